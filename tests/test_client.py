import asyncio
import json
import typing
from pathlib import Path

import httpx
import pytest

from admin_console.api.client import GatewayClient, encode_query
from admin_console.api.endpoints import AdminApi, ProductMediaApi, ProductsApi, key_path
from admin_console.api.errors import (
    HttpError,
    MalformedResponse,
    NetworkUnavailable,
    SessionExpired,
)
from admin_console.session.persistence import SessionStore, StoreEvent


def make_client(config, handler, store=None, cookie_file=None):
    store = store or SessionStore()
    client = GatewayClient(
        config, store, cookie_file=cookie_file, transport=httpx.MockTransport(handler)
    )
    return client, store


def test_encode_query_is_stable_and_drops_none():
    params = {"pattern": "*user*", "prefix": None, "page": 2, "active": True}
    assert encode_query(params) == "pattern=%2Auser%2A&page=2&active=true"
    assert encode_query(params) == encode_query(dict(params))
    assert encode_query({}) == ""
    assert encode_query(None) == ""
    assert encode_query({"id": ["a", None, "b"]}) == "id=a&id=b"


def test_key_path_escapes_separators():
    assert key_path("api_ratelimit:10.0.0.1/login") == "/kv/key/api_ratelimit%3A10.0.0.1%2Flogin"
    assert key_path("a b%") == "/kv/key/a%20b%25"


def test_get_sends_query_and_parses_json(config):
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"keys": [], "total_count": 0})

    async def scenario():
        client, _ = make_client(config, handler)
        async with client:
            return await client.get("/kv/keys", {"pattern": "*", "prefix": None})

    assert asyncio.run(scenario()) == {"keys": [], "total_count": 0}
    assert seen["url"] == "http://testserver/api/admin/kv/keys?pattern=%2A"


def test_transport_failure_is_network_unavailable(config):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        client, _ = make_client(config, handler)
        async with client:
            await client.get("/kv/stats")

    with pytest.raises(NetworkUnavailable) as exc_info:
        asyncio.run(scenario())
    assert isinstance(exc_info.value.cause, httpx.ConnectError)


@pytest.mark.parametrize("status,body,expected", [
    (500, {"detail": "Redis down"}, "Redis down"),
    (400, {"message": "Bad pattern"}, "Bad pattern"),
    (422, {"detail": [{"loc": ["body"], "msg": "field required"}]}, "field required"),
    (404, None, "Backend API endpoint not found. Check that the backend is deployed correctly."),
    (502, None, "Backend server error. Please try again later."),
    (403, None, "API Error: 403 Forbidden"),
])
def test_http_errors_carry_status_and_message(config, status, body, expected):
    def handler(request):
        if body is None:
            return httpx.Response(status, text="<html>nope</html>")
        return httpx.Response(status, json=body)

    async def scenario():
        client, _ = make_client(config, handler)
        async with client:
            await client.get("/kv/stats")

    with pytest.raises(HttpError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.status == status
    assert exc_info.value.message == expected
    assert not isinstance(exc_info.value, SessionExpired)


def test_401_invalidates_session_store_for_any_caller(config, tmp_path):
    events = []
    store = SessionStore(tmp_path / "session.json")
    store.save({"id": "u-1", "email": "admin@example.com"})
    store.subscribe(events.append)

    def handler(request):
        return httpx.Response(401, json={"detail": "Session expired"})

    async def scenario():
        client, _ = make_client(config, handler, store=store)
        async with client:
            await client.get("/products")

    with pytest.raises(SessionExpired) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.status == 401
    assert store.load() is None
    assert not (tmp_path / "session.json").exists()
    assert events == [StoreEvent.EXPIRED]


def test_non_json_body_is_malformed(config):
    def handler(request):
        return httpx.Response(200, text="<!doctype html><html></html>",
                              headers={"content-type": "text/html"})

    async def scenario():
        client, _ = make_client(config, handler)
        async with client:
            await client.get("/kv/stats")

    with pytest.raises(MalformedResponse):
        asyncio.run(scenario())


def test_no_content_is_empty_object(config):
    async def scenario():
        client, _ = make_client(config, lambda request: httpx.Response(204))
        async with client:
            return await client.delete("/kv/key/x")

    assert asyncio.run(scenario()) == {}


def test_json_methods_send_bodies(config):
    seen = []

    def handler(request: httpx.Request):
        seen.append((request.method, request.url.path, json.loads(request.content or b"null")))
        return httpx.Response(200, json={"success": True})

    async def scenario():
        client, _ = make_client(config, handler)
        api = AdminApi(client)
        async with client:
            await api.products.create({"name": "Scarf"})
            await api.products.update("p-1", {"name": "Silk scarf"})
            await api.products.bulk_update_status(["p-1", "p-2"], "archived")
            await api.dashboard.overview()

    asyncio.run(scenario())
    assert seen == [
        ("POST", "/api/admin/products", {"name": "Scarf"}),
        ("PUT", "/api/admin/products/p-1", {"name": "Silk scarf"}),
        ("PATCH", "/api/admin/products/bulk-status",
         {"product_ids": ["p-1", "p-2"], "status": "archived"}),
        ("GET", "/api/admin/dashboard/overview", None),
    ]


def test_upload_is_multipart_with_fields(config, tmp_path):
    image = tmp_path / "scarf.png"
    image.write_bytes(b"\x89PNG fake")
    seen = {}

    def handler(request: httpx.Request):
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.read()
        return httpx.Response(200, json={"success": True})

    async def scenario():
        client, _ = make_client(config, handler)
        async with client:
            return await AdminApi(client).media.upload(image, scope="gallery", bucket="products")

    assert asyncio.run(scenario()) == {"success": True}
    assert seen["content_type"].startswith("multipart/form-data; boundary=")
    assert b'name="file"; filename="scarf.png"' in seen["body"]
    assert b"\x89PNG fake" in seen["body"]
    assert b'name="scope"' in seen["body"] and b"gallery" in seen["body"]


def test_cookies_persist_and_clear_with_session(config, tmp_path):
    cookie_file = tmp_path / "cookies.json"

    def handler(request):
        return httpx.Response(
            200, json={"success": True},
            headers={"set-cookie": "admin_session=abc123; Path=/; HttpOnly"},
        )

    async def scenario():
        client, store = make_client(config, handler, cookie_file=cookie_file)
        async with client:
            await client.post("/auth/login", {"email": "a", "password": "b"})
            saved = json.loads(cookie_file.read_text())
            store.clear()
            return saved

    saved = asyncio.run(scenario())
    assert [c["name"] for c in saved] == ["admin_session"]
    assert saved[0]["value"] == "abc123"
    assert not cookie_file.exists()


def test_persisted_cookies_are_sent(config, tmp_path):
    cookie_file = tmp_path / "cookies.json"
    cookie_file.write_text(json.dumps([
        {"name": "admin_session", "value": "abc123", "domain": "testserver.local", "path": "/"},
    ]))
    seen = {}

    def handler(request):
        seen["cookie"] = request.headers.get("cookie")
        return httpx.Response(200, json={"success": True, "valid": True})

    async def scenario():
        client, _ = make_client(config, handler, cookie_file=cookie_file)
        async with client:
            await client.get("/auth/verify")

    asyncio.run(scenario())
    assert seen["cookie"] == "admin_session=abc123"


def test_ping_never_raises(config):
    def handler(request):
        assert request.url.path == "/health"
        raise httpx.ConnectTimeout("timed out", request=request)

    async def scenario():
        client, _ = make_client(config, handler)
        async with client:
            return await client.ping()

    result = asyncio.run(scenario())
    assert result["success"] is False
    assert "ConnectTimeout" in result["error"]


def test_endpoint_annotations_resolve_to_builtins():
    # methods named ``list`` must not leak into annotations of the same class
    hints = typing.get_type_hints(ProductsApi.bulk_update_status)
    assert hints["product_ids"] == list[str]
    hints = typing.get_type_hints(ProductMediaApi.upload_gallery)
    assert hints["paths"] == list[Path]


def recording_handler(seen):
    def handler(request: httpx.Request):
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            body = json.loads(request.read())
        else:
            body = request.read().decode()
        seen.append((request.method, request.url.raw_path.decode(), body))
        return httpx.Response(200, json={"success": True})

    return handler


def test_auth_profile_and_product_bulk_status(config):
    seen = []

    async def scenario():
        client, _ = make_client(config, recording_handler(seen))
        api = AdminApi(client)
        async with client:
            await api.auth.profile()
            await api.products.bulk_update_status(("p-1", "p-2"), "active")

    asyncio.run(scenario())
    assert seen == [
        ("GET", "/api/admin/auth/profile", ""),
        ("PATCH", "/api/admin/products/bulk-status",
         {"product_ids": ["p-1", "p-2"], "status": "active"}),
    ]


def test_content_moderation_routes(config):
    seen = []

    async def scenario():
        client, _ = make_client(config, recording_handler(seen))
        content = AdminApi(client).content
        async with client:
            await content.posts.list(status="draft", page=2)
            await content.posts.create({"title": "Hello"})
            await content.posts.update("42", {"title": "Hello again"})
            await content.posts.publish("42")
            await content.posts.unpublish("42")
            await content.posts.delete("42")
            await content.users.list()
            await content.users.detail("u 7")
            await content.users.ban("u-7", reason="spam")
            await content.users.unban("u-7")
            await content.users.update_role("u-7", "editor")
            await content.comments.list(approved=False)
            await content.comments.approve("c-1")
            await content.comments.delete("c-1")

    asyncio.run(scenario())
    assert seen == [
        ("GET", "/api/admin/posts?status=draft&page=2", ""),
        ("POST", "/api/admin/posts", {"title": "Hello"}),
        ("PUT", "/api/admin/posts/42", {"title": "Hello again"}),
        ("POST", "/api/admin/posts/42/publish", ""),
        ("POST", "/api/admin/posts/42/unpublish", ""),
        ("DELETE", "/api/admin/posts/42", ""),
        ("GET", "/api/admin/users", ""),
        ("GET", "/api/admin/users/u%207", ""),
        ("POST", "/api/admin/users/u-7/ban", {"reason": "spam"}),
        ("POST", "/api/admin/users/u-7/unban", ""),
        ("PUT", "/api/admin/users/u-7/role", {"role": "editor"}),
        ("GET", "/api/admin/comments?approved=false", ""),
        ("POST", "/api/admin/comments/c-1/approve", ""),
        ("DELETE", "/api/admin/comments/c-1", ""),
    ]


def test_product_media_routes(config, tmp_path):
    cover = tmp_path / "cover.jpg"
    cover.write_bytes(b"jpeg-1")
    detail = tmp_path / "detail.jpg"
    detail.write_bytes(b"jpeg-2")
    seen = []

    async def scenario():
        client, _ = make_client(config, recording_handler(seen))
        media = AdminApi(client).product_media
        async with client:
            await media.upload_featured("p-1", cover)
            await media.upload_gallery("p-1", [cover, detail])
            await media.remove_gallery_image("p-1", "https://cdn.example.com/products/cover.jpg")
            await media.remove_featured("p-1")

    asyncio.run(scenario())
    methods_and_paths = [(method, path) for method, path, _ in seen]
    assert methods_and_paths == [
        ("POST", "/api/admin/media/products/p-1/featured"),
        ("POST", "/api/admin/media/products/p-1/gallery"),
        ("DELETE", "/api/admin/media/products/p-1/gallery"),
        ("DELETE", "/api/admin/media/products/p-1/featured"),
    ]
    assert 'name="file"; filename="cover.jpg"' in seen[0][2]
    assert seen[1][2].count('name="files"') == 2
    assert seen[2][2] == "url=https%3A%2F%2Fcdn.example.com%2Fproducts%2Fcover.jpg"


def test_upload_multiple_repeats_files_field(config, tmp_path):
    paths = []
    for name in ("a.png", "b.png", "c.png"):
        path = tmp_path / name
        path.write_bytes(name.encode())
        paths.append(path)
    seen = []

    async def scenario():
        client, _ = make_client(config, recording_handler(seen))
        async with client:
            await AdminApi(client).media.upload_multiple(paths, scope="catalog")

    asyncio.run(scenario())
    method, path, body = seen[0]
    assert (method, path) == ("POST", "/api/admin/media/upload-multiple")
    assert body.count('name="files"') == 3
    for name in ("a.png", "b.png", "c.png"):
        assert f'filename="{name}"' in body
    assert 'name="scope"' in body and "catalog" in body
