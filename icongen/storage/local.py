import asyncio
from pathlib import Path
from typing import BinaryIO

import orjson

from icongen.storage.base import StorageBackend

META_SUFFIX = ".meta.json"


class LocalStorage(StorageBackend):
    """
    Disk-backed storage for development; objects are served by the icon image route.

    Content type and metadata go to a `<key>.meta.json` file next to the object.
    """

    provider = "local"

    def __init__(self, root: str | Path, public_base_url: str = "http://localhost:8000") -> None:
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path == self.root or self.root not in path.parents:
            raise ValueError(f"Invalid storage key: {key!r}")
        return path

    def _meta_path(self, key: str) -> Path:
        path = self._path(key)
        return path.with_name(path.name + META_SUFFIX)

    async def put(
        self,
        key: str,
        body: BinaryIO | bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        path = self._path(key)
        data = body if isinstance(body, bytes) else body.read()
        meta = orjson.dumps({"content_type": content_type, "metadata": metadata or {}})
        await asyncio.to_thread(_write, path, data, self._meta_path(key), meta)
        return str(path)

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        if not path.exists():
            raise FileNotFoundError(key)
        return await asyncio.to_thread(path.read_bytes)

    async def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
        self._meta_path(key).unlink(missing_ok=True)

    def url(self, key: str) -> str:
        return f"{self.public_base_url}/v1/icons/{key}/image"


def _write(path: Path, data: bytes, meta_path: Path, meta: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    meta_path.write_bytes(meta)
