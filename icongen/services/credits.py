"""Credits ledger and atomic balance updates."""

from beanie import PydanticObjectId, UpdateResponse
from beanie.operators import Inc

from icongen.core.exceptions import BadRequestError, InsufficientCreditsError
from icongen.core.logging import get_logger
from icongen.models.credit_balance import CreditBalance
from icongen.models.credit_ledger import CreditLedgerEntry
from icongen.models.user import User

log = get_logger(__name__)

REASONS = ("icon_generation", "refund", "purchase")


async def get_balance(user_id: PydanticObjectId) -> int:
    """Return current balance for user (0 if no record)."""
    bal = await CreditBalance.find_one(CreditBalance.user.id == user_id)
    return bal.balance if bal else 0


async def debit_if_sufficient(user_id: PydanticObjectId, amount: int) -> CreditBalance | None:
    """
    Subtract amount in one conditional update (balance >= amount is part of the filter).
    Returns the updated balance document, or None when nothing matched.
    """
    return await CreditBalance.find_one(
        CreditBalance.user.id == user_id,
        CreditBalance.balance >= amount,
    ).update(
        Inc({CreditBalance.balance: -amount}),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )


async def credit(user: User, amount: int) -> CreditBalance:
    """Add amount, creating the balance document on first use."""
    return await CreditBalance.find_one(CreditBalance.user.id == user.id).upsert(
        Inc({CreditBalance.balance: amount}),
        on_insert=CreditBalance(user=user, balance=amount),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )


async def apply_ledger_entry(
    user_id: PydanticObjectId,
    amount: int,
    reason: str,
    reference_type: str | None = None,
    reference_id: str | None = None,
    idempotency_key: str | None = None,
) -> tuple[CreditLedgerEntry, int]:
    """
    Atomically update balance and append a ledger entry.
    Returns (ledger_entry, balance_after).
    Debits never take the balance below zero; InsufficientCreditsError when they would.
    Idempotency: if idempotency_key is set and an entry already exists for this key, return existing and do not double-apply.
    """
    if reason not in REASONS:
        raise BadRequestError(f"Invalid reason: {reason}")
    if amount == 0:
        raise BadRequestError("Amount must be non-zero")
    user = await User.get(user_id)
    if not user:
        # A vanished user has nothing to spend
        if amount < 0:
            raise InsufficientCreditsError()
        raise BadRequestError("User not found")
    if idempotency_key:
        existing = await CreditLedgerEntry.find_one(
            CreditLedgerEntry.user.id == user_id,
            CreditLedgerEntry.idempotency_key == idempotency_key,
        )
        if existing:
            return existing, await get_balance(user_id)

    if amount < 0:
        updated = await debit_if_sufficient(user_id, -amount)
        affected = 1 if updated is not None else 0
        if affected <= 0:
            raise InsufficientCreditsError()
    else:
        updated = await credit(user, amount)
    balance_after = updated.balance

    entry = CreditLedgerEntry(
        user=user,
        amount=amount,
        balance_after=balance_after,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        idempotency_key=idempotency_key,
    )
    await entry.insert()
    log.info("credit_ledger_entry", user_id=str(user_id), amount=amount, reason=reason, balance_after=balance_after)
    return entry, balance_after


async def list_ledger(user_id: PydanticObjectId, limit: int, offset: int) -> list[CreditLedgerEntry]:
    """Ledger entries for user, newest first."""
    return (
        await CreditLedgerEntry.find(CreditLedgerEntry.user.id == user_id)
        .sort(-CreditLedgerEntry.created_at)
        .skip(offset)
        .limit(limit)
        .to_list()
    )


class CreditLedger:
    """Credit operations of one icon request, keyed by the request id."""

    async def debit(self, user_id: PydanticObjectId, amount: int, request_id: str) -> int:
        _, balance_after = await apply_ledger_entry(
            user_id,
            -amount,
            "icon_generation",
            reference_type="icon_request",
            reference_id=request_id,
            idempotency_key=f"icon_debit_{request_id}",
        )
        return balance_after

    async def refund(self, user_id: PydanticObjectId, amount: int, request_id: str) -> int:
        _, balance_after = await apply_ledger_entry(
            user_id,
            amount,
            "refund",
            reference_type="icon_request",
            reference_id=request_id,
            idempotency_key=f"icon_refund_{request_id}",
        )
        from icongen.core.audit import log_event_safely
        await log_event_safely(str(user_id), "credits_refunded", "icon_request", request_id, {"amount": amount})
        return balance_after
