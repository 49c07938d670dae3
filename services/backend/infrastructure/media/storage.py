"""
Photo/document storage
Supabase Storage when configured, otherwise a local media directory
"""
import asyncio
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from uuid import uuid4

import httpx
import structlog

from config import Settings
from domain.exceptions import MediaUploadError

logger = structlog.get_logger()

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_name(filename: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", filename or "file").strip("._")
    return cleaned or "file"


def build_object_path(report_id: Optional[str], filename: str) -> str:
    """<report>/<millis>_<token>.<ext> - unique per upload, grouped by report"""
    ext = Path(filename or "").suffix.lower() or ".bin"
    return f"{safe_name(report_id) if report_id else 'temp'}/{int(time.time() * 1000)}_{uuid4().hex[:9]}{ext}"



def _write_file(target: Path, content: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)

@dataclass
class StoredMedia:
    url: str
    storage_path: str


class MediaStorage:
    async def upload(
        self,
        report_id: Optional[str],
        filename: str,
        content: bytes,
        content_type: str,
    ) -> StoredMedia:
        raise NotImplementedError

    async def download(self, storage_path: str) -> bytes:
        raise NotImplementedError


class LocalMediaStorage(MediaStorage):
    """Files under `media_dir`, served by the API under /media"""

    def __init__(self, media_dir: str, public_base_url: str):
        self.media_dir = Path(media_dir)
        self.media_dir.mkdir(parents=True, exist_ok=True)
        self.media_dir = self.media_dir.resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, storage_path: str) -> Path:
        target = (self.media_dir / storage_path).resolve()
        if self.media_dir not in target.parents:
            raise MediaUploadError(f"storage path outside media directory: {storage_path}")
        return target

    async def upload(self, report_id, filename, content, content_type) -> StoredMedia:
        storage_path = build_object_path(report_id, filename)
        target = self._resolve(storage_path)
        try:
            await asyncio.to_thread(_write_file, target, content)
        except OSError as e:
            raise MediaUploadError(f"local media write failed: {e}") from e

        return StoredMedia(url=f"{self.public_base_url}/media/{storage_path}", storage_path=storage_path)

    async def download(self, storage_path: str) -> bytes:
        try:
            return await asyncio.to_thread(self._resolve(storage_path).read_bytes)
        except OSError as e:
            raise MediaUploadError(f"local media read failed: {e}") from e


class SupabaseMediaStorage(MediaStorage):
    """Supabase Storage REST API (public bucket)"""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.transport = transport
        self.headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    def public_url(self, storage_path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{storage_path}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=30, transport=self.transport)

    async def upload(self, report_id, filename, content, content_type) -> StoredMedia:
        storage_path = build_object_path(report_id, filename)
        upload_url = f"{self.base_url}/storage/v1/object/{self.bucket}/{storage_path}"
        headers = {
            **self.headers,
            "Content-Type": content_type or "application/octet-stream",
            "x-upsert": "true",
        }

        try:
            async with self._client() as client:
                response = await client.post(upload_url, headers=headers, content=content)
        except httpx.HTTPError as e:
            logger.error("media_upload_failed", path=storage_path, error=str(e))
            raise MediaUploadError(f"storage connect error: {e}") from e

        if response.status_code not in (200, 201):
            logger.error("media_upload_rejected", path=storage_path, status=response.status_code)
            raise MediaUploadError(f"storage upload failed [{response.status_code}]: {response.text}")

        logger.info("media_uploaded", path=storage_path, size=len(content))
        return StoredMedia(url=self.public_url(storage_path), storage_path=storage_path)

    async def download(self, storage_path: str) -> bytes:
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{storage_path}"
        try:
            async with self._client() as client:
                response = await client.get(url, headers=self.headers)
        except httpx.HTTPError as e:
            raise MediaUploadError(f"storage connect error: {e}") from e

        if response.status_code != 200:
            raise MediaUploadError(f"storage download failed [{response.status_code}]")
        return response.content


def build_media_storage(settings: Settings) -> MediaStorage:
    if settings.supabase_url and settings.supabase_service_key:
        return SupabaseMediaStorage(
            settings.supabase_url,
            settings.supabase_service_key,
            settings.supabase_bucket,
        )

    logger.info("media_storage_local", media_dir=settings.media_dir)
    return LocalMediaStorage(settings.media_dir, settings.public_base_url)
