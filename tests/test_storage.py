import io

import orjson
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from icongen.core.config import Settings
from icongen.core.exceptions import ProviderTerminalError, ProviderTransientError
from icongen.storage.base import get_storage
from icongen.storage.local import LocalStorage
from icongen.storage.s3 import S3Storage

PNG = b"\x89PNG\r\n\x1a\nfake"


def client_error(code: str, status: int, operation: str = "PutObject") -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


class FakeS3Client:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.objects: dict[str, dict] = {}

    def put_object(self, **kwargs):
        if self.error:
            raise self.error
        self.objects[kwargs["Key"]] = kwargs
        return {"ETag": '"abc"'}

    def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise client_error("NoSuchKey", 404, "GetObject")
        return {"Body": io.BytesIO(self.objects[Key]["Body"])}

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)
        return {}


async def test_local_storage_round_trip(tmp_path):
    storage = LocalStorage(tmp_path, public_base_url="http://localhost:8000/")

    uri = await storage.put("abc123", PNG, content_type="image/png")
    assert uri.endswith("abc123")
    assert await storage.get("abc123") == PNG
    assert storage.url("abc123") == "http://localhost:8000/v1/icons/abc123/image"

    await storage.delete("abc123")
    with pytest.raises(FileNotFoundError):
        await storage.get("abc123")
    # deleting twice is a no-op
    await storage.delete("abc123")


async def test_local_storage_records_content_type_and_metadata(tmp_path):
    storage = LocalStorage(tmp_path)

    await storage.put("6650f0c2a1b2c3d4e5f60718", PNG, content_type="image/png", metadata={"encoding": "base64"})

    meta = orjson.loads((tmp_path / "6650f0c2a1b2c3d4e5f60718.meta.json").read_bytes())
    assert meta == {"content_type": "image/png", "metadata": {"encoding": "base64"}}

    await storage.delete("6650f0c2a1b2c3d4e5f60718")
    assert list(tmp_path.iterdir()) == []


async def test_local_storage_accepts_file_objects(tmp_path):
    storage = LocalStorage(tmp_path)
    await storage.put("nested/key", io.BytesIO(PNG))
    assert (tmp_path / "nested" / "key").read_bytes() == PNG


async def test_local_storage_rejects_keys_outside_root(tmp_path):
    storage = LocalStorage(tmp_path / "root")
    with pytest.raises(ValueError):
        await storage.put("../escape", PNG)


async def test_s3_put_sends_content_type_and_metadata():
    client = FakeS3Client()
    storage = S3Storage("icon-generator-ai-app", client=client)

    uri = await storage.put("6650f0c2a1b2c3d4e5f60718", PNG, content_type="image/png", metadata={"encoding": "base64"})

    assert uri == "s3://icon-generator-ai-app/6650f0c2a1b2c3d4e5f60718"
    sent = client.objects["6650f0c2a1b2c3d4e5f60718"]
    assert sent["Bucket"] == "icon-generator-ai-app"
    assert sent["Body"] == PNG
    assert sent["ContentType"] == "image/png"
    assert sent["Metadata"] == {"encoding": "base64"}
    assert await storage.get("6650f0c2a1b2c3d4e5f60718") == PNG


def test_s3_url_uses_bucket_host_or_public_base():
    assert S3Storage("bucket", client=FakeS3Client()).url("k1") == "https://bucket.s3.amazonaws.com/k1"
    storage = S3Storage("bucket", public_base_url="https://cdn.example.com/icons/", client=FakeS3Client())
    assert storage.url("k1") == "https://cdn.example.com/icons/k1"


async def test_s3_missing_object_raises_file_not_found():
    storage = S3Storage("bucket", client=FakeS3Client())
    with pytest.raises(FileNotFoundError):
        await storage.get("missing")


@pytest.mark.parametrize(
    "error, expected",
    [
        (client_error("SlowDown", 503), ProviderTransientError),
        (client_error("InternalError", 500), ProviderTransientError),
        (client_error("AccessDenied", 403), ProviderTerminalError),
        (client_error("NoSuchBucket", 404), ProviderTerminalError),
        (EndpointConnectionError(endpoint_url="https://s3.amazonaws.com"), ProviderTransientError),
    ],
)
async def test_s3_upload_errors_are_classified(error, expected):
    storage = S3Storage("bucket", client=FakeS3Client(error=error))
    with pytest.raises(expected) as exc_info:
        await storage.put("k1", PNG, content_type="image/png")
    assert exc_info.value.details["provider"] == "s3"


def test_get_storage_builds_configured_backend(tmp_path):
    storage = get_storage(Settings(storage_backend="local", storage_local_path=str(tmp_path)))
    assert isinstance(storage, LocalStorage)
    assert storage.root == tmp_path.resolve()

    s3 = get_storage(Settings(storage_backend="s3", s3_bucket_name="my-icons", aws_region="us-east-1"))
    assert isinstance(s3, S3Storage)
    assert s3.url("k") == "https://my-icons.s3.amazonaws.com/k"


class FakeBlob:
    def __init__(self, bucket: "FakeBucket", name: str) -> None:
        self.bucket = bucket
        self.name = name
        self.metadata = None

    def upload_from_string(self, data, content_type=None):
        if self.bucket.error:
            raise self.bucket.error
        self.bucket.objects[self.name] = {"data": data, "content_type": content_type, "metadata": self.metadata}

    def download_as_bytes(self):
        from google.api_core.exceptions import NotFound
        if self.name not in self.bucket.objects:
            raise NotFound("missing")
        return self.bucket.objects[self.name]["data"]

    def delete(self):
        from google.api_core.exceptions import NotFound
        if self.name not in self.bucket.objects:
            raise NotFound("missing")
        del self.bucket.objects[self.name]


class FakeBucket:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.objects: dict[str, dict] = {}

    def blob(self, name: str) -> FakeBlob:
        return FakeBlob(self, name)


class FakeGCSClient:
    def __init__(self, error: Exception | None = None) -> None:
        self._bucket = FakeBucket(error)

    def bucket(self, name: str) -> FakeBucket:
        return self._bucket


async def test_gcs_round_trip_and_url():
    from icongen.storage.gcs import GCSStorage
    client = FakeGCSClient()
    storage = GCSStorage("icons-bucket", client=client)

    uri = await storage.put("k1", PNG, content_type="image/png", metadata={"encoding": "base64"})

    assert uri == "gs://icons-bucket/k1"
    assert client._bucket.objects["k1"]["metadata"] == {"encoding": "base64"}
    assert await storage.get("k1") == PNG
    assert storage.url("k1") == "https://storage.googleapis.com/icons-bucket/k1"
    await storage.delete("k1")
    await storage.delete("k1")
    with pytest.raises(FileNotFoundError):
        await storage.get("k1")


async def test_gcs_unavailable_is_transient():
    from google.api_core.exceptions import ServiceUnavailable

    from icongen.storage.gcs import GCSStorage
    storage = GCSStorage("icons-bucket", client=FakeGCSClient(error=ServiceUnavailable("down")))
    with pytest.raises(ProviderTransientError):
        await storage.put("k1", PNG, content_type="image/png")
