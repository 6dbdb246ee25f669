from datetime import datetime

from beanie import Document, Link
from pydantic import Field

from icongen.models.user import User


class CreditLedgerEntry(Document):
    user: Link[User]
    amount: int  # positive = credit, negative = debit
    balance_after: int
    reason: str  # icon_generation, refund, purchase
    reference_type: str | None = None  # icon_request, stripe_checkout, etc.
    reference_id: str | None = None
    idempotency_key: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "credit_ledger"
        indexes = [
            [("user", 1), ("created_at", -1)],
            [("idempotency_key", 1)],
        ]
