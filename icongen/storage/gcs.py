import asyncio
from typing import BinaryIO

from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage

from icongen.core.exceptions import ProviderTerminalError, ProviderTransientError
from icongen.storage.base import StorageBackend

_TRANSIENT = (
    gcs_exceptions.TooManyRequests,
    gcs_exceptions.InternalServerError,
    gcs_exceptions.BadGateway,
    gcs_exceptions.ServiceUnavailable,
    gcs_exceptions.GatewayTimeout,
)


class GCSStorage(StorageBackend):
    provider = "gcs"

    def __init__(self, bucket_name: str, client: storage.Client | None = None) -> None:
        self.bucket_name = bucket_name
        self._client = client or storage.Client()
        self._bucket = self._client.bucket(self.bucket_name)

    async def put(
        self,
        key: str,
        body: BinaryIO | bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        blob = self._bucket.blob(key)
        if metadata:
            blob.metadata = metadata
        content_type = content_type or "application/octet-stream"
        try:
            if isinstance(body, bytes):
                await asyncio.to_thread(blob.upload_from_string, body, content_type=content_type)
            else:
                await asyncio.to_thread(blob.upload_from_file, body, content_type=content_type)
        except _TRANSIENT as e:
            raise ProviderTransientError("Object storage unavailable", self.provider) from e
        except gcs_exceptions.GoogleAPIError as e:
            raise ProviderTerminalError("Object storage rejected upload", self.provider) from e
        return f"gs://{self.bucket_name}/{key}"

    async def get(self, key: str) -> bytes:
        blob = self._bucket.blob(key)
        try:
            return await asyncio.to_thread(blob.download_as_bytes)
        except gcs_exceptions.NotFound as e:
            raise FileNotFoundError(key) from e

    async def delete(self, key: str) -> None:
        blob = self._bucket.blob(key)
        try:
            await asyncio.to_thread(blob.delete)
        except gcs_exceptions.NotFound:
            pass

    def url(self, key: str) -> str:
        return f"https://storage.googleapis.com/{self.bucket_name}/{key}"
