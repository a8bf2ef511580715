from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

import httpx

from ..exceptions import (
    InvalidPayload,
    NetworkError,
    RequestFailed,
    Unauthorized,
    http_error_message,
)
from ..log import RequestCallLogger
from ..monitor import RequestMonitor
from ..token_store import TokenStore

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"

MultipartFiles = Sequence[tuple[str, tuple[str, Any, str]]]


class RequestClient:
    """Performs single HTTP calls against the shop API and normalizes failures.

    JSON and multipart bodies share one code path, so 401 handling, error
    message extraction, and transport error wrapping behave identically for
    both encodings.
    """

    def __init__(
        self,
        base_url: str,
        token_store: TokenStore,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 30.0,
        monitor: Optional[RequestMonitor] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_store = token_store
        self.monitor = monitor
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)
        self._unauthorized_handlers: list[Callable[[], None]] = []

    def url_for(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    # ── Headers ──────────────────────────────────────────────

    def auth_headers(self) -> dict[str, str]:
        headers = {"Content-Type": JSON_CONTENT_TYPE}
        token = self.token_store.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def public_headers(self) -> dict[str, str]:
        return {"Content-Type": JSON_CONTENT_TYPE}

    def multipart_headers(self) -> dict[str, str]:
        # no Content-Type: httpx writes the multipart boundary itself
        token = self.token_store.get_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    # ── 401 hooks ────────────────────────────────────────────

    def on_unauthorized(self, handler: Callable[[], None]) -> None:
        """Register a synchronous callback run after a 401 drops the token."""
        self._unauthorized_handlers.append(handler)

    def _handle_unauthorized(self) -> None:
        self.token_store.remove_token()
        for handler in list(self._unauthorized_handlers):
            handler()

    # ── Execution ────────────────────────────────────────────

    async def execute(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json_body: Any = None,
        files: Optional[MultipartFiles] = None,
        authenticated: bool = True,
        fallback_message: Optional[str] = None,
    ) -> Any:
        """Send one request and return the parsed JSON body.

        Raises:
            Unauthorized: the server answered 401 on an authenticated call.
            RequestFailed: any other non-2xx answer, or a body that is not JSON.
            InvalidPayload: the body could not be encoded.
            NetworkError: the request never got a usable HTTP response.
        """
        request_kwargs: dict[str, Any] = {"headers": headers}
        if files is not None:
            request_kwargs["files"] = list(files)
        elif json_body is not None:
            request_kwargs["json"] = json_body

        with RequestCallLogger(method, url) as call_log:
            try:
                request = self._client.build_request(method, url, **request_kwargs)
            except (TypeError, ValueError, httpx.InvalidURL) as exc:
                message = f"Invalid request payload: {exc}"
                call_log.error(message)
                raise InvalidPayload(message) from exc

            record = self.monitor.start(method, url) if self.monitor else None
            try:
                response = await self._client.send(request)
            except httpx.RequestError as exc:
                message = f"Network error: {exc}" if str(exc) else f"Network error: {type(exc).__name__}"
                call_log.error(message)
                if record:
                    self.monitor.fail(record, message)
                raise NetworkError(message) from exc

            if record:
                self.monitor.finish(record, response.status_code)

            if response.is_success:
                call_log.success(response.status_code)
                return self._parse_body(response)

            if response.status_code == 401 and authenticated:
                call_log.error("unauthorized", status=401)
                self._handle_unauthorized()
                raise Unauthorized()

            message = self._error_message(response, fallback_message)
            call_log.error(message, status=response.status_code)
            raise RequestFailed(message, status=response.status_code)

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise RequestFailed(
                "Invalid JSON in server response",
                status=response.status_code,
            ) from exc

    @staticmethod
    def _error_message(response: httpx.Response, fallback: Optional[str]) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            message = payload.get("message") or payload.get("error")
            if isinstance(message, str) and message:
                return message
        return fallback or http_error_message(response.status_code)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["RequestClient", "MultipartFiles", "JSON_CONTENT_TYPE"]
