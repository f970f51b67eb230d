"""Media store — property images hosted on Cloudinary.

Uses the Cloudinary SDK. Its calls block on HTTP, so they run in the
threadpool to keep the event loop free.
"""

import io
import logging
import time
from dataclasses import dataclass

import cloudinary.uploader
import cloudinary.utils
from cloudinary.exceptions import Error as CloudinaryError
from fastapi.concurrency import run_in_threadpool

from marketplace.config import settings
from marketplace.errors import DependencyFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredMedia:
    url: str
    public_id: str


class CloudinaryMediaStore:
    """Upload and delete images in one Cloudinary folder."""

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str = "property-images",
        timeout: float = 15.0,
    ) -> None:
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.timeout = timeout

    @property
    def credentials(self) -> dict[str, str]:
        return {"cloud_name": self.cloud_name, "api_key": self.api_key, "api_secret": self.api_secret}

    @property
    def upload_url(self) -> str:
        return cloudinary.utils.cloudinary_api_url("upload", resource_type="image", cloud_name=self.cloud_name)

    def upload_signature(self) -> dict[str, str | int]:
        """Parameters a browser needs to upload straight to Cloudinary."""
        params = {"timestamp": int(time.time()), "folder": self.folder}
        return {
            "cloud_name": self.cloud_name,
            "api_key": self.api_key,
            "timestamp": params["timestamp"],
            "signature": cloudinary.utils.api_sign_request(params, self.api_secret),
            "folder": self.folder,
            "upload_url": self.upload_url,
        }

    async def upload(self, content: bytes, filename: str, content_type: str | None = None) -> StoredMedia:
        """Upload one image.

        Raises:
            DependencyFailure: Cloudinary rejected the upload or did not answer in time.
        """
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                io.BytesIO(content),
                filename=filename,
                folder=self.folder,
                resource_type="image",
                timeout=self.timeout,
                **self.credentials,
            )
        except CloudinaryError as exc:
            logger.error("Image upload of %s failed: %s", filename, exc)
            raise DependencyFailure("Image upload failed") from exc

        logger.info("Uploaded %s as %s", filename, result.get("public_id"))
        return StoredMedia(url=result["secure_url"], public_id=result["public_id"])

    async def delete(self, public_id: str) -> None:
        """Delete one image. Missing images count as deleted."""
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.destroy,
                public_id,
                resource_type="image",
                timeout=self.timeout,
                **self.credentials,
            )
        except CloudinaryError as exc:
            raise DependencyFailure(f"Could not delete image {public_id}") from exc

        outcome = result.get("result")
        if outcome not in ("ok", "not found"):
            raise DependencyFailure(f"Could not delete image {public_id}: {outcome}")


async def delete_quietly(store, public_ids: list[str]) -> int:
    """Best-effort bulk delete. Returns how many deletions failed."""
    failures = 0
    for public_id in public_ids:
        try:
            await store.delete(public_id)
        except DependencyFailure as exc:
            failures += 1
            logger.warning("Leaving orphaned image %s: %s", public_id, exc)
    return failures


def get_media_store() -> CloudinaryMediaStore | None:
    """FastAPI dependency for the configured media store, or None when Cloudinary is not set up."""
    if not settings.media_configured:
        return None
    return CloudinaryMediaStore(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
        folder=settings.cloudinary_folder,
        timeout=settings.media_timeout_seconds,
    )
