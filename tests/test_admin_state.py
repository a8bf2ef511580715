import asyncio
from datetime import datetime

from shop_admin.admin import AdminState, SnapshotLoader, SnapshotStatus
from shop_admin.defaults import get_default_config
from shop_admin.exceptions import RequestFailed
from shop_admin.media import UploadFile
from shop_admin.schemas.auth import SessionIdentity
from shop_admin.schemas.catalog import Product
from shop_admin.session import SessionState

from fakes import LOGIN_OK, SERVER_CONFIG, SERVER_DASHBOARD, FakeServer, json_body, make_api


def _server(config_status: int = 200, dashboard_status: int = 200) -> FakeServer:
    server = FakeServer()
    server.on("POST", "/auth/login", LOGIN_OK)
    if config_status == 200:
        server.on("GET", "/admin/config", SERVER_CONFIG)
    else:
        server.on("GET", "/admin/config", {"message": "db down"}, status=config_status)
    if dashboard_status == 200:
        server.on("GET", "/admin/dashboard", SERVER_DASHBOARD)
    else:
        server.on("GET", "/admin/dashboard", {}, status=dashboard_status)
    return server


def _state(server: FakeServer):
    api = make_api(server, token=None)
    session = SessionState(api)
    session.loading = False
    return api, session, AdminState(api, session)


async def _login(session: SessionState):
    result = await session.login({"username": "admin", "password": "pw"})
    assert result.success
    return result


async def _until_called(server: FakeServer, method: str, path: str) -> None:
    for _ in range(200):
        if server.count(method, path):
            return
        await asyncio.sleep(0)
    raise AssertionError(f"{method} {path} was never requested")


# ── SnapshotLoader ───────────────────────────────────────────


def test_loader_fetches_once_and_joins_concurrent_triggers():
    calls = []

    async def fetch():
        calls.append(1)
        await asyncio.sleep(0)
        return {"n": len(calls)}

    loader = SnapshotLoader("thing", fetch)

    async def run():
        first, second = await asyncio.gather(loader.load(), loader.load())
        third = await loader.load()
        return first, second, third

    first, second, third = asyncio.run(run())

    assert len(calls) == 1
    assert first == second == third == {"n": 1}
    assert loader.loaded
    assert loader.status is SnapshotStatus.LOADED


def test_loader_refresh_bypasses_loaded_flag():
    calls = []

    async def fetch():
        calls.append(1)
        return len(calls)

    loader = SnapshotLoader("thing", fetch)

    async def run():
        await loader.load()
        return await loader.refresh()

    assert asyncio.run(run()) == 2


def test_loader_failure_without_fallback_retries_on_next_trigger():
    attempts = []

    async def fetch():
        attempts.append(1)
        if len(attempts) == 1:
            raise RequestFailed("boom", status=500)
        return "ok"

    loader = SnapshotLoader("thing", fetch)

    async def run():
        assert await loader.load() is None
        assert loader.status is SnapshotStatus.FAILED
        assert loader.error == "boom"
        assert not loader.loaded
        return await loader.load()

    assert asyncio.run(run()) == "ok"
    assert loader.error is None


def test_loader_failure_keeps_previous_data():
    results = iter(["first"])

    async def fetch():
        try:
            return next(results)
        except StopIteration:
            raise RequestFailed("gone", status=503) from None

    loader = SnapshotLoader("thing", fetch, fallback=lambda: "fallback")

    async def run():
        await loader.load()
        return await loader.refresh()

    assert asyncio.run(run()) == "first"
    assert loader.data == "first"


def test_loader_ignores_result_after_reset():
    async def run():
        gate = asyncio.Event()

        async def fetch():
            await gate.wait()
            return "stale"

        loader = SnapshotLoader("thing", fetch)
        pending = asyncio.ensure_future(loader.load())
        await asyncio.sleep(0)
        assert loader.loading
        loader.reset()
        gate.set()
        await pending
        return loader

    loader = asyncio.run(run())

    assert loader.data is None
    assert not loader.loaded
    assert loader.status is SnapshotStatus.UNLOADED


# ── AdminState ───────────────────────────────────────────────


def test_login_loads_config_then_dashboard_once():
    server = _server()
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        await admin.load_config()
        await admin.load_dashboard()
        await admin.start()

    asyncio.run(run())

    assert server.count("GET", "/admin/config") == 1
    assert server.count("GET", "/admin/dashboard") == 1
    assert admin.config_loaded and admin.dashboard_loaded
    assert admin.config.shop_info.name == "Green Leaf"
    assert admin.dashboard_data.stats.total_products == 1
    assert admin.dashboard_view()[1] == "dashboard"


def test_config_failure_falls_back_to_defaults_and_counts_as_loaded():
    server = _server(config_status=500)
    api, session, admin = _state(server)

    asyncio.run(_login(session))

    assert admin.config_loaded
    assert admin.config == get_default_config()
    assert admin.config_loader.status is SnapshotStatus.FAILED
    assert admin.config_loader.error == "db down"
    # defaults count as "config present", so the dashboard still loads
    assert server.count("GET", "/admin/dashboard") == 1


def test_product_mutation_refreshes_config_and_dashboard():
    server = _server(config_status=500)
    server.on("POST", "/products", {"id": 11, "name": "Flower"})
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        server.on("GET", "/admin/config", SERVER_CONFIG)
        return await admin.add_product(
            {
                "name": "Flower",
                "category": "Oils",
                "variants": [{"name": "1g", "price": 8}, {"name": "", "price": ""}],
            }
        )

    result = asyncio.run(run())

    assert result.success
    assert result.data == {"id": 11, "name": "Flower"}
    assert server.count("GET", "/admin/config") == 2
    assert server.count("GET", "/admin/dashboard") == 2
    assert admin.config.shop_info.name == "Green Leaf"
    sent = json_body(server.last("POST", "/products"))
    assert sent["variants"] == [{"name": "1g", "price": 8.0}]


def test_double_delete_category_shares_request_and_refresh():
    server = _server()
    server.on("DELETE", "/categories/5", {"success": True})
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        return await asyncio.gather(admin.delete_category(5), admin.delete_category(5))

    first, second = asyncio.run(run())

    assert first.success and second.success
    assert server.count("DELETE", "/categories/5") == 1
    assert server.count("GET", "/admin/config") == 2
    # category changes leave the dashboard alone
    assert server.count("GET", "/admin/dashboard") == 1


def test_mutation_without_session_fails_without_network():
    server = _server()
    api, session, admin = _state(server)

    async def run():
        return (
            await admin.add_category({"name": "Oils"}),
            await admin.add_product({"name": "Oil", "variants": [{"name": "a", "price": 1}]}),
            await admin.upload_image("missing.png"),
        )

    results = asyncio.run(run())

    assert [r.error for r in results] == ["Not authenticated"] * 3
    assert server.calls == []
    assert not admin.loading


def test_failed_mutation_reports_error_and_skips_refresh():
    server = _server()
    server.on("POST", "/farms", {"message": "Farm already exists"}, status=409)
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        return await admin.add_farm({"name": "North Farm"})

    result = asyncio.run(run())

    assert result.to_dict() == {"success": False, "error": "Farm already exists"}
    assert server.count("GET", "/admin/config") == 1


def test_invalid_product_is_rejected_before_any_request():
    server = _server()
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        return (
            await admin.add_product({"name": "", "variants": [{"name": "1g", "price": 3}]}),
            await admin.add_product({"name": "Oil", "variants": [{"name": "", "price": 3}]}),
            await admin.update_product(10, {"variants": [{"name": "1g", "price": -1}]}),
        )

    missing_name, no_variants, negative = asyncio.run(run())

    assert missing_name.error == "Product name is required"
    assert "variant" in no_variants.error
    assert not negative.success
    assert server.count("POST", "/products") == 0
    assert server.count("PUT", "/products/10") == 0


def test_partial_product_update_sends_only_given_fields():
    server = _server()
    server.on("PUT", "/products/10", {"id": 10})
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        return await admin.update_product(10, {"popular": False})

    result = asyncio.run(run())

    assert result.success
    assert json_body(server.last("PUT", "/products/10")) == {"popular": False}


def test_dashboard_failure_is_retried_on_next_trigger():
    server = _server(dashboard_status=502)
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        assert not admin.dashboard_loaded
        summary, source = admin.dashboard_view()
        assert source == "config"
        assert summary.stats.total_categories == 1
        server.on("GET", "/admin/dashboard", SERVER_DASHBOARD)
        await admin.load_dashboard()

    asyncio.run(run())

    assert admin.dashboard_loaded
    assert admin.dashboard_view()[1] == "dashboard"
    assert server.count("GET", "/admin/dashboard") == 2


def test_dashboard_waits_for_config():
    server = _server()
    api, session, admin = _state(server)
    session.user = SessionIdentity(id=1, username="admin")

    async def run():
        assert await admin.load_dashboard() is None
        assert server.calls == []
        await admin.load_config()
        await admin.load_dashboard()

    asyncio.run(run())

    assert server.count("GET", "/admin/dashboard") == 1


def test_logout_resets_snapshots_and_cache():
    server = _server()
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        await session.logout()

    asyncio.run(run())

    assert not admin.config_loaded
    assert not admin.dashboard_loaded
    assert admin.dashboard_data is None
    assert admin.config == get_default_config()
    assert len(api.cache) == 0
    assert api.token_store.get_token() is None


def test_next_login_loads_again():
    server = _server()
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        await session.logout()
        await _login(session)

    asyncio.run(run())

    assert server.count("GET", "/admin/config") == 2
    assert server.count("GET", "/admin/dashboard") == 2


def test_logout_during_config_load_discards_late_response():
    server = _server()
    api, session, admin = _state(server)

    async def run():
        gate = server.hold("GET", "/admin/config")
        login = asyncio.ensure_future(_login(session))
        await _until_called(server, "GET", "/admin/config")
        await session.logout()
        gate.set()
        await login

    asyncio.run(run())

    assert admin.config_loader.data is None
    assert not admin.config_loaded
    assert server.count("GET", "/admin/dashboard") == 0
    # the late response did not repopulate the cleared cache
    assert len(api.cache) == 0


def test_401_during_mutation_ends_session_and_resets_state():
    server = _server()
    server.on("PUT", "/farms/2", {"message": "expired"}, status=401)
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        return await admin.update_farm(2, {"name": "South"})

    result = asyncio.run(run())

    assert result.error == "Access token required"
    assert session.user is None
    assert not admin.config_loaded
    assert len(api.cache) == 0
    assert server.count("GET", "/admin/config") == 1


def test_uploads_do_not_refresh_snapshots():
    server = _server()
    server.on("POST", "/upload/image", {"success": True, "imageUrl": "https://cdn/i.png", "publicId": "i"})
    server.on("POST", "/upload/video", {"success": True, "videoUrl": "https://cdn/v.mp4", "publicId": "v"})
    server.on("POST", "/upload/images", {"success": True, "images": [{"url": "a"}]})
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        return (
            await admin.upload_image(UploadFile("i.png", b"i", "image/png")),
            await admin.upload_video(UploadFile("v.mp4", b"v", "video/mp4")),
            await admin.upload_images([UploadFile("a.png", b"a", "image/png")]),
        )

    image, video, images = asyncio.run(run())

    assert image.data == {"imageUrl": "https://cdn/i.png", "publicId": "i"}
    assert video.data == {"videoUrl": "https://cdn/v.mp4", "publicId": "v"}
    assert images.data == {"images": [{"url": "a"}]}
    assert server.count("GET", "/admin/config") == 1


def test_delete_product_media_removes_each_hosted_file():
    server = _server()
    server.on("DELETE", "/upload/media", {"success": True})
    api, session, admin = _state(server)
    product = Product(
        id=10,
        name="Oil",
        images=[
            "https://res.cloudinary.com/demo/image/upload/v1700000000/shop/oil-1.jpg",
            "https://example.com/not-hosted.jpg",
        ],
        video="https://res.cloudinary.com/demo/video/upload/v1700000001/shop/oil.mp4",
    )

    async def run():
        await _login(session)
        return await admin.delete_product_media(product)

    result = asyncio.run(run())

    assert result.data == {"deleted": ["shop/oil-1", "shop/oil"]}
    bodies = [json_body(r) for r in server.calls if r.method == "DELETE"]
    assert bodies == [
        {"publicId": "shop/oil-1", "resourceType": "image"},
        {"publicId": "shop/oil", "resourceType": "video"},
    ]


def test_shop_settings_update_refreshes_config_only():
    server = _server()
    server.on("PUT", "/admin/shop-settings", {"success": True})
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        return await admin.update_shop_settings({"shopInfo": {"name": "Renamed"}})

    result = asyncio.run(run())

    assert result.success
    assert server.count("GET", "/admin/config") == 2
    assert server.count("GET", "/admin/dashboard") == 1


def test_concurrent_config_loads_share_one_request():
    server = _server()
    api, session, admin = _state(server)
    session.user = SessionIdentity(id=1, username="admin")

    async def run():
        return await asyncio.gather(admin.load_config(), admin.load_config())

    first, second = asyncio.run(run())

    assert server.count("GET", "/admin/config") == 1
    assert first is second
    assert first.shop_info.name == "Green Leaf"


def test_login_as_another_user_reloads_snapshots():
    server = _server()
    api, session, admin = _state(server)
    other_config = {**SERVER_CONFIG, "shopInfo": {"name": "Blue Hill", "description": "", "logo": "B"}}

    async def run():
        await _login(session)
        server.on(
            "POST",
            "/auth/login",
            {**LOGIN_OK, "token": "bob-token", "user": {"id": 2, "username": "bob", "role": "admin"}},
        )
        server.on("GET", "/admin/config", other_config)
        await session.login({"username": "bob", "password": "pw"})

    asyncio.run(run())

    assert session.user.username == "bob"
    assert server.count("GET", "/admin/config") == 2
    assert server.count("GET", "/admin/dashboard") == 2
    assert admin.config.shop_info.name == "Blue Hill"
    assert server.last("GET", "/admin/config").headers["Authorization"] == "Bearer bob-token"


def test_unencodable_payload_is_reported_as_failure():
    server = _server()
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        return await admin.add_category({"name": "Oils", "createdAt": datetime(2024, 1, 1)})

    result = asyncio.run(run())

    assert not result.success
    assert result.error.startswith("Invalid request payload")
    assert server.count("POST", "/categories") == 0
    assert server.count("GET", "/admin/config") == 1


def test_upload_with_non_object_response_fails():
    server = _server()
    server.on("POST", "/upload/image", ["https://cdn/x.jpg"])
    server.on("POST", "/upload/images", "done")
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        return (
            await admin.upload_image(UploadFile("x.jpg", b"x", "image/jpeg")),
            await admin.upload_images([UploadFile("a.png", b"a", "image/png")]),
        )

    image, images = asyncio.run(run())

    assert not image.success
    assert image.error == "Unexpected response to upload image"
    assert not images.success
    assert images.error == "Unexpected response to upload images"


def test_refresh_config_reloads_through_the_loader():
    server = _server()
    api, session, admin = _state(server)

    async def run():
        await _login(session)
        api.clear_cache_for_endpoint("/admin/config")
        gate = server.hold("GET", "/admin/config")
        refresh = asyncio.ensure_future(admin.refresh_config())
        for _ in range(200):
            if server.count("GET", "/admin/config") == 2:
                break
            await asyncio.sleep(0)
        in_flight = (admin.config_loaded, admin.config_loader.status)
        gate.set()
        await refresh
        return in_flight

    loaded_during, status_during = asyncio.run(run())

    assert loaded_during is False
    assert status_during is SnapshotStatus.LOADING
    assert admin.config_loaded
    assert server.count("GET", "/admin/config") == 2
