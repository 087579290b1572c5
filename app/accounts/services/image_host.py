from __future__ import annotations

import hashlib
import logging
import os
import shutil
import time
from pathlib import Path
from typing import Optional, Protocol
from uuid import uuid4

import httpx
from fastapi import UploadFile

from app.accounts.core.config import Settings

log = logging.getLogger(__name__)

CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"


class ImageHost(Protocol):
    async def upload(self, local_path: str | os.PathLike) -> Optional[str]:
        """Upload a local file; return its public URL, or None on failure."""
        ...


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError:
        log.warning("임시 업로드 파일 삭제 실패: %s", path, exc_info=True)


def cloudinary_signature(params: dict[str, str], api_secret: str) -> str:
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryImageHost:
    """Signed uploads to the Cloudinary REST API. The local file is removed after every attempt."""

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "CloudinaryImageHost":
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            timeout=settings.cloudinary_timeout_seconds,
        )

    @property
    def upload_url(self) -> str:
        return f"{CLOUDINARY_API_BASE}/{self.cloud_name}/auto/upload"

    async def upload(self, local_path: str | os.PathLike) -> Optional[str]:
        path = Path(local_path)
        if not path.is_file():
            return None
        if not (self.cloud_name and self.api_key and self.api_secret):
            log.error("Cloudinary credentials are not configured")
            _remove_quietly(path)
            return None

        params = {"timestamp": str(int(time.time()))}
        data = {
            **params,
            "api_key": self.api_key,
            "signature": cloudinary_signature(params, self.api_secret),
        }
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as http:
                with path.open("rb") as fh:
                    r = await http.post(self.upload_url, data=data, files={"file": (path.name, fh)})
            if r.status_code != 200:
                log.warning("Cloudinary upload failed (%s): %s", r.status_code, r.text[:200])
                return None
            body = r.json()
            return body.get("secure_url") or body.get("url")
        except (httpx.HTTPError, ValueError):
            log.warning("Cloudinary upload error for %s", path.name, exc_info=True)
            return None
        finally:
            _remove_quietly(path)


def save_upload_to_temp(upload: Optional[UploadFile], temp_dir: str | os.PathLike) -> Optional[Path]:
    """Spool a multipart upload to the temp dir; None when no file was sent."""
    if upload is None or not upload.filename:
        return None
    target_dir = Path(temp_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / f"{uuid4().hex}_{Path(upload.filename).name}"
    with target.open("wb") as out:
        shutil.copyfileobj(upload.file, out)
    return target
