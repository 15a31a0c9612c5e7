"""
Client-side copy of the caller's permission names.

Fetched once per session and consulted locally to decide which controls to
show. It is advisory only: the server re-checks every action.
"""
from collections.abc import Iterable
from typing import Any

import httpx

from core.logging import get_logger

logger = get_logger(__name__)


class PermissionMirror:
    def __init__(self, base_url: str, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url
        self._transport = transport
        self.token: str | None = None
        self.user: dict[str, Any] | None = None
        self.catalog: list[dict[str, Any]] | None = None
        self._permissions: frozenset[str] = frozenset()
        self._loaded = False

    def _client(self) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        return httpx.AsyncClient(
            base_url=self.base_url, transport=self._transport, headers=headers
        )

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def permissions(self) -> frozenset[str]:
        return self._permissions

    async def login(self, username: str, password: str) -> dict[str, Any]:
        """Log in, keep the token and load the permission set"""
        async with self._client() as client:
            response = await client.post(
                "/login", json={"username": username, "password": password}
            )
            response.raise_for_status()
            data = response.json()

        self.token = data["token"]
        self.user = data["user"]
        await self.load()
        return data

    async def load(self, include_catalog: bool = False) -> frozenset[str]:
        """
        Fetch the caller's permissions unless already loaded.

        With include_catalog the full permission catalog is fetched as well,
        which needs view_roles on the server side.
        """
        if self._loaded and (not include_catalog or self.catalog is not None):
            return self._permissions

        async with self._client() as client:
            if not self._loaded:
                response = await client.get("/me/permissions")
                response.raise_for_status()
                self._permissions = frozenset(response.json())
                self._loaded = True
            if include_catalog:
                response = await client.get("/permissions")
                response.raise_for_status()
                self.catalog = response.json()

        logger.debug(f"Loaded {len(self._permissions)} permission(s)")
        return self._permissions

    async def refresh(self) -> frozenset[str]:
        """Re-fetch explicitly; the server never pushes changes"""
        self._loaded = False
        self.catalog = None
        return await self.load()

    def clear(self) -> None:
        """Forget the token and every cached permission (logout)"""
        self.token = None
        self.user = None
        self.catalog = None
        self._permissions = frozenset()
        self._loaded = False

    def can(self, name: str) -> bool:
        return name in self._permissions

    def can_any(self, names: Iterable[str]) -> bool:
        return any(name in self._permissions for name in names)

    def can_all(self, names: Iterable[str]) -> bool:
        return all(name in self._permissions for name in names)

    def missing(self, names: Iterable[str]) -> list[str]:
        """Names from the list the caller does not hold, in the given order"""
        return [name for name in names if name not in self._permissions]
