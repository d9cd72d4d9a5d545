"""Storage service for handling Supabase storage operations."""

from typing import Any, Dict, Optional

import httpx

from sugarop.core.config import Settings
from sugarop.core.exceptions import AppError, StorageDeleteError, StorageWriteError
from sugarop.utils.logging import get_logger

LOGGER = get_logger(__name__)


class StorageService:
    """Service for managing receipt images in a Supabase storage bucket.

    One pooled ``httpx.AsyncClient`` is shared by every call; close it with
    :meth:`aclose` on shutdown.
    """

    def __init__(
        self,
        url: str,
        service_role_key: str,
        bucket: str = "receipts",
        timeout: float = 60,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = (url or "").rstrip("/")
        self.service_role_key = service_role_key
        self.bucket = bucket
        self.timeout = timeout
        self.base_api_url = f"{self.url}/storage/v1"
        self.headers = {
            "Authorization": f"Bearer {self.service_role_key}",
            "apikey": self.service_role_key,
        }
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "StorageService":
        return cls(
            url=settings.supabase.url,
            service_role_key=settings.supabase.service_role_key,
            bucket=settings.supabase.storage_bucket,
            timeout=settings.http_timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def upload_file(self, path: str, content: bytes, content_type: str) -> Dict[str, Any]:
        """Upload a file to the bucket without overwriting.

        Args:
            path: Target path within the bucket.
            content: File bytes.
            content_type: MIME type stored with the object.

        Returns:
            Dict containing the upload result.

        Raises:
            StorageWriteError: If the upload fails.
        """
        upload_url = f"{self.base_api_url}/object/{self.bucket}/{path}"

        try:
            response = await self._client.post(
                upload_url,
                headers={**self.headers, "Content-Type": content_type, "x-upsert": "false"},
                content=content,
            )
        except httpx.HTTPError as e:
            LOGGER.error(f"Error uploading file to Supabase: {str(e)}", exc_info=True)
            raise StorageWriteError(str(e) or type(e).__name__, original_error=e) from e

        if response.status_code != 200:
            LOGGER.error(
                f"Failed to upload file to Supabase: {response.text}",
                extra={"bucket": self.bucket, "path": path, "status_code": response.status_code},
            )
            raise StorageWriteError(_error_message(response))

        LOGGER.info("Uploaded file to storage", extra={"bucket": self.bucket, "path": path})
        return _json_or_empty(response)

    def get_public_url(self, path: str) -> str:
        """Public URL for an object in the bucket."""
        return f"{self.base_api_url}/object/public/{self.bucket}/{path}"

    async def delete_file(self, path: str) -> None:
        """Remove one object from the bucket.

        Raises:
            StorageDeleteError: If the delete fails.
        """
        delete_url = f"{self.base_api_url}/object/{self.bucket}"

        try:
            response = await self._client.request(
                "DELETE",
                delete_url,
                headers={**self.headers, "Content-Type": "application/json"},
                json={"prefixes": [path]},
            )
        except httpx.HTTPError as e:
            LOGGER.error(f"Error deleting file from Supabase: {str(e)}", exc_info=True)
            raise StorageDeleteError(str(e) or type(e).__name__, original_error=e) from e

        if response.status_code != 200:
            LOGGER.error(
                f"Failed to delete file from Supabase: {response.text}",
                extra={"bucket": self.bucket, "path": path, "status_code": response.status_code},
            )
            raise StorageDeleteError(_error_message(response))

        LOGGER.info("Deleted file from storage", extra={"bucket": self.bucket, "path": path})

    async def check_bucket(self) -> Dict[str, Any]:
        """Fetch bucket metadata.

        Raises:
            AppError: If the bucket is missing or storage is unreachable.
        """
        try:
            response = await self._client.get(
                f"{self.base_api_url}/bucket/{self.bucket}", headers=self.headers
            )
        except httpx.HTTPError as e:
            raise AppError(f"Storage unreachable: {e}", original_error=e) from e

        if response.status_code != 200:
            raise AppError(f"Bucket '{self.bucket}' unavailable: {_error_message(response)}")
        return _json_or_empty(response)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {"data": body}
