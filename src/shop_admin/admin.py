"""State coordinator for the admin dashboard.

Holds two server-derived snapshots, the shop configuration and the
dashboard summary, each driven by an explicit loader instead of reacting
to every state change:

    UNLOADED -> LOADING -> LOADED
                        -> FAILED

A snapshot loads once per session. A second trigger while a load is
outstanding joins that load; only ``refresh_*`` bypasses the
"already loaded" short-circuit. The dashboard is not loaded until the
configuration has been present at least once in the session.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from .api.service import ApiService
from .defaults import get_default_config
from .exceptions import NotAuthenticated, ShopAdminError
from .log import log_snapshot
from .media import MediaKind, UploadSource, extract_public_id
from .schemas.auth import SessionIdentity
from .schemas.catalog import Configuration, Product, ProductDraft
from .schemas.dashboard import DashboardSummary
from .schemas.results import OperationResult
from .session import SessionState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotStatus(str, enum.Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


def _error_message(exc: Exception) -> str:
    if isinstance(exc, ShopAdminError):
        return exc.message
    if isinstance(exc, ValidationError):
        errors = exc.errors()
        if errors:
            return str(errors[0].get("msg", exc))
    return str(exc)


class SnapshotLoader(Generic[T]):
    """Load-once holder for one server-derived snapshot.

    On failure the previous data is kept. When there is none and a
    ``fallback`` factory is given, the fallback becomes the data and the
    snapshot counts as loaded; otherwise the loaded flag stays false so the
    next trigger retries.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[T]],
        *,
        fallback: Optional[Callable[[], T]] = None,
    ):
        self.name = name
        self._fetch = fetch
        self._fallback = fallback
        self.data: Optional[T] = None
        self.loaded = False
        self.status = SnapshotStatus.UNLOADED
        self.error: Optional[str] = None
        self._inflight: Optional[asyncio.Task[Optional[T]]] = None
        self._generation = 0

    @property
    def loading(self) -> bool:
        return self._inflight is not None

    async def load(self, force: bool = False) -> Optional[T]:
        if self._inflight is not None:
            return await asyncio.shield(self._inflight)
        if self.loaded and not force:
            return self.data
        self.status = SnapshotStatus.LOADING
        self._inflight = asyncio.ensure_future(self._run(self._generation))
        return await asyncio.shield(self._inflight)

    async def refresh(self) -> Optional[T]:
        self.loaded = False
        return await self.load(force=True)

    async def _run(self, generation: int) -> Optional[T]:
        try:
            data = await self._fetch()
        except (ShopAdminError, ValueError) as exc:
            if generation != self._generation:
                return self.data
            self.error = _error_message(exc)
            self.status = SnapshotStatus.FAILED
            log_snapshot(self.name, loaded=False, error=self.error)
            if self.data is None and self._fallback is not None:
                self.data = self._fallback()
                self.loaded = True
            return self.data
        finally:
            if generation == self._generation:
                self._inflight = None

        if generation != self._generation:
            # reset while the request was in flight; the result belongs to a dead session
            return self.data
        self.data = data
        self.loaded = True
        self.error = None
        self.status = SnapshotStatus.LOADED
        log_snapshot(self.name, loaded=True)
        return data

    def reset(self) -> None:
        self._generation += 1
        self._inflight = None
        self.data = None
        self.loaded = False
        self.error = None
        self.status = SnapshotStatus.UNLOADED


def _payload(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True, exclude_none=True)
    return data


class AdminState:
    """Configuration and dashboard snapshots plus the catalog CRUD helpers.

    Every public operation returns an :class:`OperationResult`; exceptions
    from the API layer never escape.
    """

    def __init__(self, api: ApiService, session: SessionState):
        self.api = api
        self.session = session
        self.config_loader: SnapshotLoader[Configuration] = SnapshotLoader(
            "config", self._fetch_config, fallback=get_default_config
        )
        self.dashboard_loader: SnapshotLoader[DashboardSummary] = SnapshotLoader(
            "dashboard", self._fetch_dashboard
        )
        self._default_config = get_default_config()
        self._config_seen = False
        self._identity: Optional[SessionIdentity] = None
        self._busy = 0
        self._unsubscribe = session.subscribe(self._on_session_change)

    # ── Session wiring ───────────────────────────────────────

    def _on_session_change(self, user: Optional[SessionIdentity]) -> Optional[Awaitable[None]]:
        previous, self._identity = self._identity, user
        if user is None:
            logger.info("Resetting admin state for logout")
            self.reset()
            return None
        if previous is not None and previous is not user:
            # a new login replaces the session; snapshots belong to the old one
            logger.info("Resetting admin state for new session")
            self.reset()
        return self.start()

    async def start(self) -> None:
        """Initial load for a freshly established session."""
        await self.load_config()
        await self.load_dashboard()

    def reset(self) -> None:
        self.config_loader.reset()
        self.dashboard_loader.reset()
        self._config_seen = False

    def close(self) -> None:
        self._unsubscribe()

    # ── Snapshots ────────────────────────────────────────────

    async def _fetch_config(self) -> Configuration:
        return Configuration.model_validate(await self.api.get_admin_config())

    async def _fetch_dashboard(self) -> DashboardSummary:
        return DashboardSummary.model_validate(await self.api.get_dashboard())

    @property
    def config(self) -> Configuration:
        return self.config_loader.data or self._default_config

    @property
    def dashboard_data(self) -> Optional[DashboardSummary]:
        return self.dashboard_loader.data

    @property
    def config_loaded(self) -> bool:
        return self.config_loader.loaded

    @property
    def dashboard_loaded(self) -> bool:
        return self.dashboard_loader.loaded

    @property
    def loading(self) -> bool:
        return self._busy > 0 or self.config_loader.loading or self.session.loading

    async def load_config(self, force: bool = False) -> Configuration:
        if self.session.is_authenticated and not self.session.loading:
            await (self.config_loader.refresh() if force else self.config_loader.load())
            if self.config_loader.data is not None:
                self._config_seen = True
        return self.config

    async def load_dashboard(self, force: bool = False) -> Optional[DashboardSummary]:
        if not self.session.is_authenticated or self.session.loading:
            return self.dashboard_data
        if not self._config_seen:
            logger.debug("Dashboard load deferred until configuration is present")
            return self.dashboard_data
        return await (self.dashboard_loader.refresh() if force else self.dashboard_loader.load())

    async def refresh_config(self) -> Configuration:
        return await self.load_config(force=True)

    async def refresh_dashboard(self) -> Optional[DashboardSummary]:
        return await self.load_dashboard(force=True)

    def dashboard_view(self) -> tuple[DashboardSummary, str]:
        """Dashboard summary and its source, ``"dashboard"`` or ``"config"``."""
        if self.dashboard_data is not None:
            return self.dashboard_data, "dashboard"
        return DashboardSummary.from_config(self.config), "config"

    # ── Mutation plumbing ────────────────────────────────────

    def _require_session(self) -> None:
        if not self.session.is_authenticated:
            raise NotAuthenticated()

    async def _mutation(
        self,
        action: str,
        call: Callable[[], Awaitable[Any]],
        *,
        refresh_dashboard: bool = False,
    ) -> OperationResult:
        self._busy += 1
        try:
            self._require_session()
            response = await call()
        except ShopAdminError as exc:
            logger.warning("Failed to %s: %s", action, exc.message)
            return OperationResult.fail(exc.message or f"Failed to {action}")
        else:
            await self.refresh_config()
            if refresh_dashboard:
                await self.refresh_dashboard()
            return OperationResult.ok(response)
        finally:
            self._busy -= 1

    async def _side_call(self, action: str, call: Callable[[], Awaitable[Any]]) -> OperationResult:
        try:
            self._require_session()
            response = await call()
        except ShopAdminError as exc:
            logger.warning("Failed to %s: %s", action, exc.message)
            return OperationResult.fail(exc.message or f"Failed to {action}")
        return OperationResult.ok(response)

    # ── Products ─────────────────────────────────────────────

    async def add_product(self, product: Any) -> OperationResult:
        if not self.session.is_authenticated:
            return OperationResult.fail(NotAuthenticated().message)
        try:
            draft = ProductDraft.for_create(_payload(product))
        except ValueError as exc:
            return OperationResult.fail(_error_message(exc))
        return await self._mutation(
            "add product",
            lambda: self.api.create_product(draft.to_api()),
            refresh_dashboard=True,
        )

    async def update_product(self, product_id: Any, updates: Any) -> OperationResult:
        if not self.session.is_authenticated:
            return OperationResult.fail(NotAuthenticated().message)
        try:
            draft = ProductDraft.for_update(_payload(updates))
        except ValueError as exc:
            return OperationResult.fail(_error_message(exc))
        return await self._mutation(
            "update product",
            lambda: self.api.update_product(product_id, draft.to_api()),
            refresh_dashboard=True,
        )

    async def delete_product(self, product_id: Any) -> OperationResult:
        return await self._mutation(
            "delete product",
            lambda: self.api.delete_product(product_id),
            refresh_dashboard=True,
        )

    async def bulk_update_products(self, data: Any) -> OperationResult:
        return await self._mutation(
            "update products",
            lambda: self.api.bulk_update_products(_payload(data)),
            refresh_dashboard=True,
        )

    # ── Categories ───────────────────────────────────────────

    async def add_category(self, category: Any) -> OperationResult:
        return await self._mutation("add category", lambda: self.api.create_category(_payload(category)))

    async def update_category(self, category_id: Any, updates: Any) -> OperationResult:
        return await self._mutation(
            "update category", lambda: self.api.update_category(category_id, _payload(updates))
        )

    async def delete_category(self, category_id: Any) -> OperationResult:
        return await self._mutation("delete category", lambda: self.api.delete_category(category_id))

    # ── Farms ────────────────────────────────────────────────

    async def add_farm(self, farm: Any) -> OperationResult:
        return await self._mutation("add farm", lambda: self.api.create_farm(_payload(farm)))

    async def update_farm(self, farm_id: Any, updates: Any) -> OperationResult:
        return await self._mutation("update farm", lambda: self.api.update_farm(farm_id, _payload(updates)))

    async def delete_farm(self, farm_id: Any) -> OperationResult:
        return await self._mutation("delete farm", lambda: self.api.delete_farm(farm_id))

    # ── Social media ─────────────────────────────────────────

    async def add_social_media(self, link: Any) -> OperationResult:
        return await self._mutation("add social media", lambda: self.api.create_social_media(_payload(link)))

    async def update_social_media(self, link_id: Any, updates: Any) -> OperationResult:
        return await self._mutation(
            "update social media", lambda: self.api.update_social_media(link_id, _payload(updates))
        )

    async def delete_social_media(self, link_id: Any) -> OperationResult:
        return await self._mutation("delete social media", lambda: self.api.delete_social_media(link_id))

    # ── Shop settings ────────────────────────────────────────

    async def update_shop_settings(self, settings: Any) -> OperationResult:
        return await self._mutation(
            "update shop settings", lambda: self.api.update_shop_settings(_payload(settings))
        )

    # ── Media (no snapshot refresh) ──────────────────────────

    async def _upload(
        self, action: str, call: Callable[[], Awaitable[Any]], fields: dict[str, Any]
    ) -> OperationResult:
        result = await self._side_call(action, call)
        if not result.success:
            return result
        if not isinstance(result.data, dict):
            logger.warning("Unexpected %s response: %r", action, result.data)
            return OperationResult.fail(f"Unexpected response to {action}")
        return OperationResult.ok({key: result.data.get(key, default) for key, default in fields.items()})

    async def upload_image(self, file: UploadSource) -> OperationResult:
        return await self._upload(
            "upload image", lambda: self.api.upload_image(file), {"imageUrl": None, "publicId": None}
        )

    async def upload_images(self, files: list[UploadSource]) -> OperationResult:
        return await self._upload("upload images", lambda: self.api.upload_images(files), {"images": []})

    async def upload_video(self, file: UploadSource) -> OperationResult:
        return await self._upload(
            "upload video", lambda: self.api.upload_video(file), {"videoUrl": None, "publicId": None}
        )

    async def delete_media(self, public_id: str, resource_type: MediaKind = "image") -> OperationResult:
        return await self._side_call(
            "delete media", lambda: self.api.delete_media(public_id, resource_type)
        )

    async def delete_product_media(self, product: Product) -> OperationResult:
        """Remove a product's hosted images and video.

        Failures on individual files are logged and skipped so one missing
        file does not block the rest.
        """
        if not self.session.is_authenticated:
            return OperationResult.fail(NotAuthenticated().message)

        targets: list[tuple[str, MediaKind]] = []
        for url in product.images or ([product.image] if product.image else []):
            public_id = extract_public_id(url)
            if public_id:
                targets.append((public_id, "image"))
        video_id = extract_public_id(product.video)
        if video_id:
            targets.append((video_id, "video"))

        deleted: list[str] = []
        for public_id, kind in targets:
            result = await self.delete_media(public_id, kind)
            if result.success:
                deleted.append(public_id)
            else:
                logger.warning("Failed to delete %s %s: %s", kind, public_id, result.error)
        return OperationResult.ok({"deleted": deleted})


__all__ = ["AdminState", "SnapshotLoader", "SnapshotStatus"]
