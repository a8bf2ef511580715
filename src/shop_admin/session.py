"""Authenticated identity and its lifecycle.

The identity is the only global piece of mutable state. It is set on login
(or on start-up when a stored token still verifies) and cleared on logout
or on any 401. Subscribers are told about every transition; clearing the
identity also clears the response cache.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import ValidationError

from .api.service import ApiService
from .exceptions import ShopAdminError
from .schemas.auth import LoginCredentials, SessionIdentity
from .schemas.results import OperationResult

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional[SessionIdentity]], Union[None, Awaitable[None]]]


class SessionState:
    def __init__(self, api: ApiService):
        self.api = api
        self.user: Optional[SessionIdentity] = None
        self.loading = True
        self._listeners: list[SessionListener] = []
        self._background: set[asyncio.Task[Any]] = set()
        api.on_unauthorized(self._handle_unauthorized)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it.

        Listeners may be plain functions or coroutine functions. Awaitables
        returned while an async session call is running are awaited before
        that call returns.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> list[Awaitable[None]]:
        pending: list[Awaitable[None]] = []
        for listener in list(self._listeners):
            result = listener(self.user)
            if inspect.isawaitable(result):
                pending.append(result)
        return pending

    async def _publish(self, user: Optional[SessionIdentity]) -> None:
        self.user = user
        if user is None:
            self.api.clear_cache()
        pending = self._notify()
        if pending:
            await asyncio.gather(*pending)

    def _handle_unauthorized(self) -> None:
        # called synchronously from the request path; the token is already gone
        if self.user is None:
            return
        logger.warning("Session ended by 401 response")
        self.user = None
        for awaitable in self._notify():
            task = asyncio.ensure_future(awaitable)
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    # ── Lifecycle ────────────────────────────────────────────

    async def initialize(self) -> Optional[SessionIdentity]:
        """Restore the session from a stored token, dropping it if it no longer verifies."""
        self.loading = True
        try:
            token = self.api.token_store.get_token()
            if not token:
                return None
            try:
                response = await self.api.verify_token()
            except ShopAdminError as exc:
                logger.warning("Token verification failed: %s", exc.message)
                self.api.token_store.remove_token()
                return None

            if isinstance(response, dict) and response.get("success"):
                identity = SessionIdentity.model_validate({**(response.get("user") or {}), "token": token})
                self.loading = False
                await self._publish(identity)
                return identity

            self.api.token_store.remove_token()
            return None
        finally:
            self.loading = False

    async def login(self, credentials: Union[LoginCredentials, dict[str, Any]]) -> OperationResult:
        try:
            creds = (
                credentials
                if isinstance(credentials, LoginCredentials)
                else LoginCredentials.model_validate(credentials)
            )
        except ValidationError:
            return OperationResult.fail("Username and password are required")

        try:
            response = await self.api.login(creds.model_dump())
        except ShopAdminError as exc:
            logger.warning("Login error: %s", exc.message)
            return OperationResult.fail(exc.message or "Login failed")

        if not isinstance(response, dict) or not response.get("success"):
            message = response.get("message") if isinstance(response, dict) else None
            return OperationResult.fail(message or "Login failed")

        token = response.get("token")
        if token:
            self.api.token_store.set_token(token)
        identity = SessionIdentity.model_validate({**(response.get("user") or {}), "token": token})
        self.loading = False
        await self._publish(identity)
        return OperationResult.ok(identity)

    async def logout(self) -> None:
        self.api.token_store.remove_token()
        await self._publish(None)

    async def update_profile(self, updates: dict[str, Any]) -> OperationResult:
        try:
            response = await self.api.update_profile(updates)
        except ShopAdminError as exc:
            logger.warning("Profile update error: %s", exc.message)
            return OperationResult.fail(exc.message or "Profile update failed")

        if not isinstance(response, dict) or not response.get("success"):
            message = response.get("message") if isinstance(response, dict) else None
            return OperationResult.fail(message or "Profile update failed")

        current = self.user.model_dump() if self.user else {}
        user_data = response.get("user") or {**current, **updates}
        token = self.user.token if self.user else self.api.token_store.get_token()
        identity = SessionIdentity.model_validate({**user_data, "token": token})
        # same session, new details: no reload cascade
        self.user = identity
        return OperationResult.ok(identity)

    async def change_password(self, current_password: str, new_password: str) -> OperationResult:
        try:
            response = await self.api.change_password(
                {"currentPassword": current_password, "newPassword": new_password}
            )
        except ShopAdminError as exc:
            logger.warning("Password change error: %s", exc.message)
            return OperationResult.fail(exc.message or "Password change failed")

        if not isinstance(response, dict) or not response.get("success"):
            message = response.get("message") if isinstance(response, dict) else None
            return OperationResult.fail(message or "Password change failed")
        return OperationResult.ok(response.get("message") or "Password updated successfully")


__all__ = ["SessionListener", "SessionState"]
