from abc import ABC, abstractmethod
from typing import BinaryIO

from icongen.core.config import Settings, get_settings


class StorageBackend(ABC):
    provider: str = "unknown"

    @abstractmethod
    async def put(
        self,
        key: str,
        body: BinaryIO | bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Store object under key; return path or URI."""
        ...

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Retrieve object bytes; FileNotFoundError if missing."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete object; no-op if missing."""
        ...

    @abstractmethod
    def url(self, key: str) -> str:
        """Public URL of the object stored under key."""
        ...


def get_storage(settings: Settings | None = None) -> StorageBackend:
    settings = settings or get_settings()
    if settings.storage_backend == "s3":
        from icongen.storage.s3 import S3Storage
        return S3Storage(
            bucket_name=settings.s3_bucket_name,
            region_name=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url,
            public_base_url=settings.s3_public_base_url,
            aws_access_key_id=settings.aws_access_key_id or None,
            aws_secret_access_key=settings.aws_secret_access_key or None,
            timeout=settings.upload_timeout_seconds,
        )
    if settings.storage_backend == "gcs":
        from icongen.storage.gcs import GCSStorage
        return GCSStorage(bucket_name=settings.gcs_bucket_name or "icon-generator-ai-app")
    from icongen.storage.local import LocalStorage
    return LocalStorage(root=settings.storage_local_path, public_base_url=settings.public_base_url)
