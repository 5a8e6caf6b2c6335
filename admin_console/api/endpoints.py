"""Admin API endpoint groups over the gateway client."""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

from .client import GatewayClient


def key_path(name: str) -> str:
    """Path for one key-space entry; names may contain ``/`` and anything else."""
    return f"/kv/key/{quote(name, safe='')}"


def _file_part(field: str, path: Path) -> tuple[str, tuple]:
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return (field, (path.name, path.read_bytes(), content_type))


class AuthApi:
    def __init__(self, client: GatewayClient):
        self.client = client

    async def login(self, email: str, password: str) -> dict:
        return await self.client.post("/auth/login", {"email": email, "password": password})

    async def logout(self) -> dict:
        return await self.client.post("/auth/logout")

    async def verify(self) -> dict:
        return await self.client.get("/auth/verify")

    async def profile(self) -> dict:
        return await self.client.get("/auth/profile")


class KeyValueApi:
    def __init__(self, client: GatewayClient):
        self.client = client

    async def stats(self) -> dict:
        return await self.client.get("/kv/stats")

    async def keys(self, pattern: str = "*", prefix: Optional[str] = None) -> dict:
        return await self.client.get("/kv/keys", {"pattern": pattern, "prefix": prefix or None})

    async def key(self, name: str) -> dict:
        return await self.client.get(key_path(name))

    async def delete_key(self, name: str) -> dict:
        return await self.client.delete(key_path(name))

    async def flush(self) -> dict:
        return await self.client.post("/kv/flush")


class DashboardApi:
    def __init__(self, client: GatewayClient):
        self.client = client

    async def overview(self) -> dict:
        return await self.client.get("/dashboard/overview")

    async def health(self) -> dict:
        return await self.client.get("/dashboard/health")

    async def stats(self) -> dict:
        return await self.client.get("/dashboard/stats")


class ProductsApi:
    def __init__(self, client: GatewayClient):
        self.client = client

    async def list(self, **params: Any) -> dict:
        return await self.client.get("/products", params)

    async def detail(self, product_id: str) -> dict:
        return await self.client.get(f"/products/{quote(str(product_id), safe='')}")

    async def create(self, data: dict) -> dict:
        return await self.client.post("/products", data)

    async def update(self, product_id: str, data: dict) -> dict:
        return await self.client.put(f"/products/{quote(str(product_id), safe='')}", data)

    async def delete(self, product_id: str) -> dict:
        return await self.client.delete(f"/products/{quote(str(product_id), safe='')}")

    async def bulk_update_status(self, product_ids: list[str], status: str) -> dict:
        return await self.client.patch(
            "/products/bulk-status",
            {"product_ids": list(product_ids), "status": status},
        )

    async def stats(self) -> dict:
        return await self.client.get("/products/stats")


class MediaApi:
    def __init__(self, client: GatewayClient):
        self.client = client

    async def upload(self, path: Path, scope: str = "general", bucket: str = "products") -> dict:
        return await self.client.upload(
            "/media/upload",
            [_file_part("file", Path(path))],
            {"scope": scope, "bucket": bucket},
        )

    async def upload_multiple(
        self, paths: list[Path], scope: str = "general", bucket: str = "products"
    ) -> dict:
        return await self.client.upload(
            "/media/upload-multiple",
            [_file_part("files", Path(p)) for p in paths],
            {"scope": scope, "bucket": bucket},
        )

    async def delete(self, url: str, bucket: str = "products") -> dict:
        return await self.client.delete("/media", {"url": url, "bucket": bucket})


def _id_path(prefix: str, item_id: str, *rest: str) -> str:
    return "/".join([prefix, quote(str(item_id), safe=""), *rest])


class PostsApi:
    def __init__(self, client: GatewayClient):
        self.client = client

    async def list(self, **params: Any) -> dict:
        return await self.client.get("/posts", params)

    async def create(self, data: dict) -> dict:
        return await self.client.post("/posts", data)

    async def update(self, post_id: str, data: dict) -> dict:
        return await self.client.put(_id_path("/posts", post_id), data)

    async def delete(self, post_id: str) -> dict:
        return await self.client.delete(_id_path("/posts", post_id))

    async def publish(self, post_id: str) -> dict:
        return await self.client.post(_id_path("/posts", post_id, "publish"))

    async def unpublish(self, post_id: str) -> dict:
        return await self.client.post(_id_path("/posts", post_id, "unpublish"))


class UsersApi:
    def __init__(self, client: GatewayClient):
        self.client = client

    async def list(self, **params: Any) -> dict:
        return await self.client.get("/users", params)

    async def detail(self, user_id: str) -> dict:
        return await self.client.get(_id_path("/users", user_id))

    async def ban(self, user_id: str, reason: str = "") -> dict:
        return await self.client.post(_id_path("/users", user_id, "ban"), {"reason": reason})

    async def unban(self, user_id: str) -> dict:
        return await self.client.post(_id_path("/users", user_id, "unban"))

    async def update_role(self, user_id: str, role: str) -> dict:
        return await self.client.put(_id_path("/users", user_id, "role"), {"role": role})


class CommentsApi:
    def __init__(self, client: GatewayClient):
        self.client = client

    async def list(self, **params: Any) -> dict:
        return await self.client.get("/comments", params)

    async def delete(self, comment_id: str) -> dict:
        return await self.client.delete(_id_path("/comments", comment_id))

    async def approve(self, comment_id: str) -> dict:
        return await self.client.post(_id_path("/comments", comment_id, "approve"))


class ContentApi:
    """Posts, site users and comment moderation."""

    def __init__(self, client: GatewayClient):
        self.posts = PostsApi(client)
        self.users = UsersApi(client)
        self.comments = CommentsApi(client)


class ProductMediaApi:
    """Featured image and gallery of one product."""

    def __init__(self, client: GatewayClient):
        self.client = client

    async def upload_featured(self, product_id: str, path: Path) -> dict:
        return await self.client.upload(
            _id_path("/media/products", product_id, "featured"), [_file_part("file", Path(path))]
        )

    async def remove_featured(self, product_id: str) -> dict:
        return await self.client.delete(_id_path("/media/products", product_id, "featured"))

    async def upload_gallery(self, product_id: str, paths: list[Path]) -> dict:
        return await self.client.upload(
            _id_path("/media/products", product_id, "gallery"),
            [_file_part("files", Path(p)) for p in paths],
        )

    async def remove_gallery_image(self, product_id: str, url: str) -> dict:
        return await self.client.request_json(
            _id_path("/media/products", product_id, "gallery"), "DELETE", data={"url": url}
        )


class AdminApi:
    """Every backend operation the console uses, grouped by area."""

    def __init__(self, client: GatewayClient):
        self.client = client
        self.auth = AuthApi(client)
        self.kv = KeyValueApi(client)
        self.dashboard = DashboardApi(client)
        self.products = ProductsApi(client)
        self.media = MediaApi(client)
        self.product_media = ProductMediaApi(client)
        self.content = ContentApi(client)

    async def ping(self) -> dict:
        return await self.client.ping()
