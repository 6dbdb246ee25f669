"""Icon generation: debit a credit, generate, record, upload; refund on any failure."""

import asyncio
import base64
import binascii
import uuid
from dataclasses import dataclass
from typing import Any, Protocol

from beanie import PydanticObjectId

from icongen.core.exceptions import (
    AppError,
    ConsistencyError,
    NotFoundError,
    ProviderTerminalError,
    ProviderTransientError,
)
from icongen.core.logging import get_logger
from icongen.generation.base import ImageGenerator
from icongen.models.icon import ICON_STORED, Icon
from icongen.storage.base import StorageBackend

log = get_logger(__name__)

ICON_COST = 1
ICON_CONTENT_TYPE = "image/png"
# Generators hand back base64 text; the stored object is the decoded bytes
ICON_METADATA = {"encoding": "base64"}


@dataclass(frozen=True)
class GeneratedIcon:
    icon_id: str
    storage_key: str
    image_url: str


class Ledger(Protocol):
    async def debit(self, user_id: Any, amount: int, request_id: str) -> int: ...

    async def refund(self, user_id: Any, amount: int, request_id: str) -> int: ...


class RecordStore(Protocol):
    async def create(self, user_id: Any, prompt: str) -> Any: ...

    async def mark_stored(self, record: Any, storage_key: str) -> None: ...

    async def delete(self, record: Any) -> None: ...


class IconRecordStore:
    """Icon documents in MongoDB."""

    async def create(self, user_id: PydanticObjectId, prompt: str) -> Icon:
        icon = Icon(user_id=user_id, prompt=prompt, content_type=ICON_CONTENT_TYPE)
        await icon.insert()
        return icon

    async def mark_stored(self, record: Icon, storage_key: str) -> None:
        record.status = ICON_STORED
        record.storage_key = storage_key
        await record.save()
        from icongen.core.audit import log_event_safely
        await log_event_safely(str(record.user_id), "icon_generated", "icon", str(record.id), {"prompt": record.prompt})

    async def delete(self, record: Icon) -> None:
        await record.delete()


def decode_image(image_b64: str, provider: str) -> bytes:
    try:
        data = base64.b64decode(image_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ProviderTerminalError("Image generation returned malformed image data", provider) from e
    if not data:
        raise ProviderTerminalError("Image generation returned no image data", provider)
    return data


class IconService:
    """
    Runs one icon request as a unit of work.

    The credit is debited first; generation, the icon record and the upload follow.
    Any failure after the debit deletes what was created and refunds the credit
    before the error reaches the caller.
    """

    def __init__(
        self,
        generator: ImageGenerator,
        storage: StorageBackend,
        ledger: Ledger,
        records: RecordStore,
        generation_timeout: float = 60.0,
        upload_timeout: float = 30.0,
        upload_attempts: int = 2,
    ) -> None:
        self.generator = generator
        self.storage = storage
        self.ledger = ledger
        self.records = records
        self.generation_timeout = generation_timeout
        self.upload_timeout = upload_timeout
        self.upload_attempts = max(1, upload_attempts)

    async def generate_icon(self, user_id: Any, prompt: str) -> GeneratedIcon:
        request_id = uuid.uuid4().hex
        # Raises InsufficientCreditsError; nothing to undo yet
        await self.ledger.debit(user_id, ICON_COST, request_id)

        record = None
        storage_key = None
        try:
            image_b64 = await self._generate(prompt)
            image = decode_image(image_b64, self.generator.provider)
            record = await self.records.create(user_id, prompt)
            storage_key = str(record.id)
            await self._upload(storage_key, image)
            await self.records.mark_stored(record, storage_key)
        except BaseException as exc:
            # Cancellation (client disconnect, shutdown) must still refund
            await asyncio.shield(self._compensate(user_id, request_id, record, storage_key, exc))
            raise

        image_url = self.storage.url(storage_key)
        log.info("icon_generated", user_id=str(user_id), icon_id=storage_key, size_bytes=len(image))
        return GeneratedIcon(icon_id=storage_key, storage_key=storage_key, image_url=image_url)

    async def _generate(self, prompt: str) -> str:
        try:
            return await asyncio.wait_for(self.generator.generate(prompt), timeout=self.generation_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTransientError("Image generation timed out", self.generator.provider) from e

    async def _upload(self, key: str, image: bytes) -> None:
        for attempt in range(1, self.upload_attempts + 1):
            put = asyncio.ensure_future(
                self.storage.put(key, image, content_type=ICON_CONTENT_TYPE, metadata=dict(ICON_METADATA))
            )
            try:
                await asyncio.wait_for(asyncio.shield(put), timeout=self.upload_timeout)
                return
            except asyncio.TimeoutError as e:
                error = ProviderTransientError("Image upload timed out", self.storage.provider)
                error.__cause__ = e
            except ProviderTransientError as e:
                error = e
            finally:
                # Thread-backed writes outlive the timeout; the key is only reused or deleted once they land
                if not put.done():
                    await self._settle(key, put)
            log.warning("icon_upload_retry", key=key, attempt=attempt, reason=error.message)
        raise error

    async def _settle(self, key: str, put: asyncio.Future) -> None:
        (outcome,) = await asyncio.shield(asyncio.gather(put, return_exceptions=True))
        if isinstance(outcome, BaseException):
            log.warning("icon_upload_late_failure", key=key, reason=repr(outcome))
        else:
            log.warning("icon_upload_late_write", key=key)

    async def _compensate(
        self,
        user_id: Any,
        request_id: str,
        record: Any,
        storage_key: str | None,
        exc: BaseException,
    ) -> None:
        reason = exc.message if isinstance(exc, AppError) else repr(exc)
        log.warning("icon_generation_failed", user_id=str(user_id), request_id=request_id, reason=reason)
        failures: list[str] = []

        # A timed-out or failed upload may still have landed
        if storage_key is not None:
            try:
                await self.storage.delete(storage_key)
            except Exception:
                log.exception("icon_orphan_object_delete_failed", key=storage_key)
                failures.append("delete_object")
        if record is not None:
            try:
                await self.records.delete(record)
            except Exception:
                log.exception("icon_orphan_record_delete_failed", icon_id=str(record.id))
                failures.append("delete_record")
        try:
            balance = await self.ledger.refund(user_id, ICON_COST, request_id)
            log.info("credit_refunded", user_id=str(user_id), request_id=request_id, balance=balance)
        except Exception:
            log.exception("credit_refund_failed", user_id=str(user_id), request_id=request_id)
            failures.append("refund_credit")

        if failures:
            raise ConsistencyError(
                "Icon generation failed and could not be fully rolled back",
                details={"request_id": request_id, "failed_steps": failures, "reason": reason},
            ) from exc


async def list_icons(user_id: PydanticObjectId, limit: int, offset: int) -> list[Icon]:
    """Stored icons for user, newest first."""
    return (
        await Icon.find(Icon.user_id == user_id, Icon.status == ICON_STORED)
        .sort(-Icon.created_at)
        .skip(offset)
        .limit(limit)
        .to_list()
    )


async def get_icon_image(user_id: PydanticObjectId, icon_id: str, storage: StorageBackend) -> tuple[Icon, bytes]:
    """Owner-only read of an icon's stored bytes."""
    if not PydanticObjectId.is_valid(icon_id):
        raise NotFoundError("Icon not found")
    icon = await Icon.find_one(
        Icon.id == PydanticObjectId(icon_id),
        Icon.user_id == user_id,
        Icon.status == ICON_STORED,
    )
    if not icon or not icon.storage_key:
        raise NotFoundError("Icon not found")
    try:
        data = await storage.get(icon.storage_key)
    except FileNotFoundError as e:
        log.error("icon_object_missing", icon_id=icon_id, key=icon.storage_key)
        raise NotFoundError("Icon image not found") from e
    return icon, data
