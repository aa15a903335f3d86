"""Object storage for generated receipts (Cloudinary upload API)."""

from __future__ import annotations

import hashlib
import time
from typing import Callable, Optional, Protocol

import httpx
from domain_errors import UpstreamFailure
from loguru import logger
from pydantic import BaseModel

from .config import StorageSettings


class StoredAsset(BaseModel):
    public_id: str
    url: str


class ObjectStorage(Protocol):
    async def upload_raw(self, content: bytes, *, public_id: str, folder: str) -> StoredAsset:
        ...

    async def delete(self, public_id: str) -> None:
        ...


def sign_params(params: dict[str, str], api_secret: str) -> str:
    """Cloudinary request signature: SHA-1 over the sorted params followed by the secret."""

    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params) if params[key] != "")
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryStorage:
    def __init__(
        self,
        settings: StorageSettings,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self._client = client
        self.clock = clock

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _url(self, action: str) -> str:
        base = self.settings.api_base_url.rstrip("/")
        return f"{base}/{self.settings.cloud_name}/raw/{action}"

    def _signed(self, params: dict[str, str]) -> dict[str, str]:
        params = {**params, "timestamp": str(int(self.clock()))}
        return {
            **params,
            "api_key": self.settings.api_key,
            "signature": sign_params(params, self.settings.api_secret),
        }

    async def _post(self, action: str, data: dict[str, str], files: Optional[dict] = None) -> dict:
        try:
            resp = await self._get_client().post(
                self._url(action),
                data=data,
                files=files,
                timeout=self.settings.timeout_seconds,
            )
        except httpx.RequestError as exc:
            logger.warning("Cloudinary {action} request failed: {error}", action=action, error=exc)
            raise UpstreamFailure("Storage service unavailable") from exc

        if not resp.is_success:
            logger.warning(
                "Cloudinary {action} returned {status}: {body}",
                action=action,
                status=resp.status_code,
                body=resp.text[:500],
            )
            raise UpstreamFailure("Storage service error")
        return resp.json()

    async def upload_raw(self, content: bytes, *, public_id: str, folder: str) -> StoredAsset:
        data = self._signed({"public_id": public_id, "folder": folder})
        payload = await self._post(
            "upload",
            data,
            files={"file": (f"{public_id}.html", content, "text/html")},
        )
        return StoredAsset(public_id=payload["public_id"], url=payload["secure_url"])

    async def delete(self, public_id: str) -> None:
        await self._post("destroy", self._signed({"public_id": public_id}))
