import asyncio
from typing import Any, BinaryIO

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from icongen.core.exceptions import ProviderTerminalError, ProviderTransientError
from icongen.storage.base import StorageBackend

_TRANSIENT_CODES = {"SlowDown", "RequestTimeout", "ServiceUnavailable", "InternalError", "Throttling"}
_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


class S3Storage(StorageBackend):
    provider = "s3"

    def __init__(
        self,
        bucket_name: str,
        region_name: str | None = None,
        endpoint_url: str | None = None,
        public_base_url: str | None = None,
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        timeout: float = 30.0,
        client: Any = None,
    ) -> None:
        self.bucket_name = bucket_name
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        # Credentials fall back to the default boto3 chain (env, profile, instance role)
        self._client = client or boto3.client(
            "s3",
            region_name=region_name,
            endpoint_url=endpoint_url,
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            config=Config(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": 2, "mode": "standard"},
            ),
        )

    async def put(
        self,
        key: str,
        body: BinaryIO | bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        kwargs: dict[str, Any] = {
            "Bucket": self.bucket_name,
            "Key": key,
            "Body": body,
            "ContentType": content_type or "application/octet-stream",
        }
        if metadata:
            kwargs["Metadata"] = metadata
        try:
            await asyncio.to_thread(self._client.put_object, **kwargs)
        except ClientError as e:
            raise self._translate(e, "upload") from e
        except BotoCoreError as e:
            raise ProviderTransientError("Object storage unreachable", self.provider) from e
        return f"s3://{self.bucket_name}/{key}"

    async def get(self, key: str) -> bytes:
        try:
            response = await asyncio.to_thread(self._client.get_object, Bucket=self.bucket_name, Key=key)
            return await asyncio.to_thread(response["Body"].read)
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise FileNotFoundError(key) from e
            raise self._translate(e, "download") from e
        except BotoCoreError as e:
            raise ProviderTransientError("Object storage unreachable", self.provider) from e

    async def delete(self, key: str) -> None:
        # S3 DeleteObject succeeds for missing keys
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            raise self._translate(e, "delete") from e
        except BotoCoreError as e:
            raise ProviderTransientError("Object storage unreachable", self.provider) from e

    def url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{self.bucket_name}.s3.amazonaws.com/{key}"

    def _translate(self, exc: ClientError, action: str) -> ProviderTransientError | ProviderTerminalError:
        code = _error_code(exc)
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
        details = {"action": action, "error_code": code}
        if code in _TRANSIENT_CODES or status >= 500:
            return ProviderTransientError(f"Object storage {action} failed", self.provider, details=details)
        return ProviderTerminalError(f"Object storage {action} rejected", self.provider, details=details)


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))
