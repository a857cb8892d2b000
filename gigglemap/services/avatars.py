"""Avatar storage on an external image host (Cloudinary REST API)."""

from __future__ import annotations

import hashlib
import time
from typing import Protocol
from urllib.parse import urlsplit, urlunsplit

import httpx
import structlog

from gigglemap.core.config import Settings
from gigglemap.core.exceptions import InfrastructureError, ValidationError

logger = structlog.get_logger(__name__)

MAX_AVATAR_BYTES = 10 * 1024 * 1024
_API_BASE = "https://api.cloudinary.com/v1_1"
_UPLOAD_TRANSFORMATION = "c_fill,g_face,h_400,w_400/f_auto,q_auto"
_TIMEOUT = httpx.Timeout(30.0, connect=5.0)


class AvatarStorage(Protocol):
    async def upload(self, content: bytes, *, user_id: int) -> str: ...

    async def delete(self, url: str) -> bool: ...


def validate_avatar(content: bytes, content_type: str | None) -> None:
    if not content:
        raise ValidationError("No image file provided")
    if not (content_type or "").startswith("image/"):
        raise ValidationError("Only image files are allowed")
    if len(content) > MAX_AVATAR_BYTES:
        raise ValidationError("Image exceeds the 10MB limit")


def is_cloudinary_url(url: str | None) -> bool:
    return bool(url) and "cloudinary.com" in str(url)


def optimized_avatar_url(
    url: str | None, *, width: int = 200, height: int = 200, quality: str = "auto"
) -> str | None:
    """Insert a face-cropping resize right after the ``upload`` path segment."""

    if not url or not is_cloudinary_url(url):
        return url
    parts = urlsplit(url)
    segments = parts.path.split("/")
    if "upload" not in segments:
        return url
    at = segments.index("upload") + 1
    segments.insert(at, f"w_{width},h_{height},c_fill,g_face,q_{quality},f_auto")
    return urlunsplit(parts._replace(path="/".join(segments)))


def _sign(params: dict[str, str], api_secret: str) -> str:
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1((to_sign + api_secret).encode("utf-8")).hexdigest()


class CloudinaryAvatarStorage:
    def __init__(
        self,
        *,
        cloud_name: str | None,
        api_key: str | None,
        api_secret: str | None,
        folder: str = "gigglemap/avatars",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._cloud_name = cloud_name
        self._api_key = api_key
        self._api_secret = api_secret
        self._folder = folder.strip("/")
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> CloudinaryAvatarStorage:
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            folder=settings.avatar_folder,
        )

    @property
    def configured(self) -> bool:
        return bool(self._cloud_name and self._api_key and self._api_secret)

    def _signed(self, params: dict[str, str]) -> dict[str, str]:
        assert self._api_key and self._api_secret
        return {**params, "api_key": self._api_key, "signature": _sign(params, self._api_secret)}

    async def _post(
        self, action: str, data: dict[str, str], files: dict | None = None
    ) -> dict:
        url = f"{_API_BASE}/{self._cloud_name}/image/{action}"
        if self._client is not None:
            resp = await self._client.post(url, data=data, files=files, timeout=_TIMEOUT)
        else:
            async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
                resp = await client.post(url, data=data, files=files)
        resp.raise_for_status()
        return resp.json()

    async def upload(self, content: bytes, *, user_id: int) -> str:
        if not self.configured:
            raise InfrastructureError("Image hosting is not configured")
        timestamp = str(int(time.time()))
        params = {
            "folder": self._folder,
            "overwrite": "true",
            "public_id": f"user_{user_id}_avatar_{int(time.time() * 1000)}",
            "timestamp": timestamp,
            "transformation": _UPLOAD_TRANSFORMATION,
        }
        try:
            body = await self._post(
                "upload",
                self._signed(params),
                files={"file": ("avatar", content, "application/octet-stream")},
            )
        except httpx.HTTPError as exc:
            logger.error("avatar_upload_failed", user_id=user_id, error=str(exc))
            raise InfrastructureError(f"Failed to upload image: {exc}") from exc
        url = body.get("secure_url")
        if not url:
            raise InfrastructureError("Image host returned no URL")
        logger.info("avatar_uploaded", user_id=user_id)
        return str(url)

    def public_id_for(self, url: str) -> str:
        file_name = urlsplit(url).path.rstrip("/").split("/")[-1]
        return f"{self._folder}/{file_name.split('.')[0]}"

    async def delete(self, url: str) -> bool:
        """Best effort: failures are logged and reported as ``False``."""

        if not is_cloudinary_url(url):
            return True
        if not self.configured:
            logger.warning("avatar_delete_skipped", reason="not_configured")
            return False
        params = {"public_id": self.public_id_for(url), "timestamp": str(int(time.time()))}
        try:
            body = await self._post("destroy", self._signed(params))
        except httpx.HTTPError as exc:
            logger.warning("avatar_delete_failed", public_id=params["public_id"], error=str(exc))
            return False
        return body.get("result") == "ok"
