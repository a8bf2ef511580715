"""Request coordinator for the shop administration API.

Adds three things on top of :class:`RequestClient`:

* deduplication: identical calls (method + URL + body) made while one is
  already in flight share that single network round trip;
* a 30 second cache for GET responses, checked at read time;
* prefix-based invalidation after every successful mutation.

Invalidation policy: each mutation clears its own resource prefix and
``/admin/config``; product mutations also clear ``/admin/dashboard`` since
product counts feed the dashboard aggregates.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Sequence
from urllib.parse import urlencode

import httpx

from ..config import Settings, get_settings
from ..exceptions import InvalidPayload
from ..media import MediaKind, UploadSource, to_upload_file
from ..monitor import RequestMonitor
from ..token_store import FileTokenStore, TokenStore
from .cache import (
    PendingRequests,
    ResponseCache,
    await_shared,
    cache_key,
    request_fingerprint,
)
from .client import RequestClient

logger = logging.getLogger(__name__)

PRODUCT_PREFIXES = ("/products", "/admin/config", "/admin/dashboard")
CATEGORY_PREFIXES = ("/categories", "/admin/config")
FARM_PREFIXES = ("/farms", "/admin/config")
SOCIAL_MEDIA_PREFIXES = ("/social-media", "/admin/config")
SHOP_SETTINGS_PREFIXES = ("/admin/config", "/config")


@dataclass
class CoordinatorStats:
    network_calls: int = 0
    cache_hits: int = 0
    deduplicated: int = 0


class ApiService:
    def __init__(
        self,
        client: RequestClient,
        *,
        cache_timeout: float = 30.0,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.client = client
        self.cache = ResponseCache(timeout=cache_timeout, clock=clock or time.monotonic)
        self.pending = PendingRequests()
        self.stats = CoordinatorStats()
        # 401 on any authenticated call wipes every cached response
        self.client.on_unauthorized(self.clear_cache)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        token_store: Optional[TokenStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> ApiService:
        resolved = settings or get_settings()
        store = token_store or FileTokenStore(resolved.storage_path, key=resolved.token_key)
        client = RequestClient(
            resolved.api_url,
            store,
            http_client=http_client,
            timeout_seconds=resolved.http_timeout_seconds,
            monitor=RequestMonitor() if resolved.monitor_enabled else None,
        )
        return cls(client, cache_timeout=resolved.cache_timeout_seconds, clock=clock)

    async def __aenter__(self) -> ApiService:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    @property
    def token_store(self) -> TokenStore:
        return self.client.token_store

    def on_unauthorized(self, handler: Callable[[], None]) -> None:
        self.client.on_unauthorized(handler)

    # ── Core request paths ───────────────────────────────────

    async def request(self, endpoint: str, *, method: str = "GET", body: Any = None) -> Any:
        """Authenticated call with deduplication; GET responses are cached."""
        return await self._coordinated(endpoint, method=method, body=body, public=False)

    async def public_request(self, endpoint: str, *, method: str = "GET", body: Any = None) -> Any:
        """Unauthenticated call; same deduplication, GETs cached under their own keys."""
        return await self._coordinated(endpoint, method=method, body=body, public=True)

    async def _coordinated(self, endpoint: str, *, method: str, body: Any, public: bool) -> Any:
        method = method.upper()
        url = self.client.url_for(endpoint)
        key = request_fingerprint(method, url, body, public=public)

        in_flight = self.pending.get(key)
        if in_flight is not None:
            self.stats.deduplicated += 1
            logger.debug("request_deduplicated", extra={"data": {"method": method, "endpoint": endpoint}})
            return await await_shared(in_flight)

        read_key = None
        if method == "GET":
            read_key = cache_key(endpoint, {"public": True} if public else None)
            entry = self.cache.get(read_key)
            if entry is not None:
                self.stats.cache_hits += 1
                logger.debug("cache_hit", extra={"data": {"endpoint": endpoint}})
                return entry.data

        headers = self.client.public_headers() if public else self.client.auth_headers()
        generation = self.cache.generation

        async def send() -> Any:
            self.stats.network_calls += 1
            result = await self.client.execute(
                method,
                url,
                headers=headers,
                json_body=body,
                authenticated=not public,
            )
            if read_key is not None:
                self.cache.set_if_current(read_key, result, generation)
            return result

        task = self.pending.start(key, send)
        return await await_shared(task)

    async def _mutate(
        self,
        endpoint: str,
        method: str,
        body: Any = None,
        *,
        invalidate: Iterable[str],
    ) -> Any:
        result = await self.request(endpoint, method=method, body=body)
        for prefix in invalidate:
            self.clear_cache_for_endpoint(prefix)
        return result

    # ── Cache control ────────────────────────────────────────

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("API cache cleared")

    def clear_cache_for_endpoint(self, prefix: str) -> int:
        return self.cache.clear_prefix(prefix)

    # ── Auth ─────────────────────────────────────────────────

    async def login(self, credentials: dict[str, Any]) -> Any:
        self.clear_cache()
        return await self.public_request("/auth/login", method="POST", body=credentials)

    async def verify_token(self) -> Any:
        return await self.request("/auth/verify")

    async def update_profile(self, profile: dict[str, Any]) -> Any:
        return await self._mutate("/auth/profile", "PUT", profile, invalidate=("/auth",))

    async def change_password(self, passwords: dict[str, Any]) -> Any:
        return await self.request("/auth/change-password", method="PUT", body=passwords)

    # ── Dashboard & configuration ────────────────────────────

    async def get_dashboard(self) -> Any:
        return await self.request("/admin/dashboard")

    async def get_config(self) -> Any:
        return await self.public_request("/config")

    async def get_admin_config(self) -> Any:
        return await self.request("/admin/config")

    async def update_shop_settings(self, settings: dict[str, Any]) -> Any:
        return await self._mutate("/admin/shop-settings", "PUT", settings, invalidate=SHOP_SETTINGS_PREFIXES)

    # ── Products ─────────────────────────────────────────────

    async def get_products(self, params: Optional[dict[str, Any]] = None) -> Any:
        query = urlencode({k: v for k, v in (params or {}).items() if v is not None and v != ""})
        return await self.public_request(f"/products?{query}" if query else "/products")

    async def get_product(self, product_id: Any) -> Any:
        return await self.public_request(f"/products/{product_id}")

    async def create_product(self, product: dict[str, Any]) -> Any:
        return await self._mutate("/products", "POST", product, invalidate=PRODUCT_PREFIXES)

    async def update_product(self, product_id: Any, product: dict[str, Any]) -> Any:
        return await self._mutate(f"/products/{product_id}", "PUT", product, invalidate=PRODUCT_PREFIXES)

    async def delete_product(self, product_id: Any) -> Any:
        return await self._mutate(f"/products/{product_id}", "DELETE", invalidate=PRODUCT_PREFIXES)

    async def bulk_update_products(self, data: dict[str, Any]) -> Any:
        return await self._mutate("/admin/products/bulk-update", "POST", data, invalidate=PRODUCT_PREFIXES)

    # ── Categories ───────────────────────────────────────────

    async def get_categories(self) -> Any:
        return await self.public_request("/categories")

    async def get_category(self, category_id: Any) -> Any:
        return await self.public_request(f"/categories/{category_id}")

    async def create_category(self, category: dict[str, Any]) -> Any:
        return await self._mutate("/categories", "POST", category, invalidate=CATEGORY_PREFIXES)

    async def update_category(self, category_id: Any, category: dict[str, Any]) -> Any:
        return await self._mutate(f"/categories/{category_id}", "PUT", category, invalidate=CATEGORY_PREFIXES)

    async def delete_category(self, category_id: Any) -> Any:
        return await self._mutate(f"/categories/{category_id}", "DELETE", invalidate=CATEGORY_PREFIXES)

    # ── Farms ────────────────────────────────────────────────

    async def get_farms(self) -> Any:
        return await self.public_request("/farms")

    async def get_farm(self, farm_id: Any) -> Any:
        return await self.public_request(f"/farms/{farm_id}")

    async def create_farm(self, farm: dict[str, Any]) -> Any:
        return await self._mutate("/farms", "POST", farm, invalidate=FARM_PREFIXES)

    async def update_farm(self, farm_id: Any, farm: dict[str, Any]) -> Any:
        return await self._mutate(f"/farms/{farm_id}", "PUT", farm, invalidate=FARM_PREFIXES)

    async def delete_farm(self, farm_id: Any) -> Any:
        return await self._mutate(f"/farms/{farm_id}", "DELETE", invalidate=FARM_PREFIXES)

    # ── Social media ─────────────────────────────────────────

    async def get_social_media(self) -> Any:
        return await self.public_request("/social-media")

    async def get_social_media_link(self, link_id: Any) -> Any:
        return await self.public_request(f"/social-media/{link_id}")

    async def create_social_media(self, link: dict[str, Any]) -> Any:
        return await self._mutate("/social-media", "POST", link, invalidate=SOCIAL_MEDIA_PREFIXES)

    async def update_social_media(self, link_id: Any, link: dict[str, Any]) -> Any:
        return await self._mutate(f"/social-media/{link_id}", "PUT", link, invalidate=SOCIAL_MEDIA_PREFIXES)

    async def delete_social_media(self, link_id: Any) -> Any:
        return await self._mutate(f"/social-media/{link_id}", "DELETE", invalidate=SOCIAL_MEDIA_PREFIXES)

    # ── Media ────────────────────────────────────────────────

    async def _upload(self, endpoint: str, field: str, sources: Sequence[UploadSource], fallback: str) -> Any:
        # every upload carries its own payload: never cached or deduplicated
        try:
            files = [(field, to_upload_file(source).as_httpx()) for source in sources]
        except OSError as exc:
            raise InvalidPayload(f"Cannot read upload file: {exc}") from exc
        self.stats.network_calls += 1
        return await self.client.execute(
            "POST",
            self.client.url_for(endpoint),
            headers=self.client.multipart_headers(),
            files=files,
            fallback_message=fallback,
        )

    async def upload_image(self, file: UploadSource) -> Any:
        return await self._upload("/upload/image", "image", [file], "Image upload failed")

    async def upload_images(self, files: Sequence[UploadSource]) -> Any:
        return await self._upload("/upload/images", "images", list(files), "Images upload failed")

    async def upload_video(self, file: UploadSource) -> Any:
        return await self._upload("/upload/video", "video", [file], "Video upload failed")

    async def delete_media(self, public_id: str, resource_type: MediaKind = "image") -> Any:
        return await self.request(
            "/upload/media",
            method="DELETE",
            body={"publicId": public_id, "resourceType": resource_type},
        )


__all__ = [
    "ApiService",
    "CoordinatorStats",
    "PRODUCT_PREFIXES",
    "CATEGORY_PREFIXES",
    "FARM_PREFIXES",
    "SOCIAL_MEDIA_PREFIXES",
    "SHOP_SETTINGS_PREFIXES",
]
