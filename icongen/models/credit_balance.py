from beanie import Document, Link

from icongen.models.user import User


class CreditBalance(Document):
    """Current balance per user; only ever changed by conditional $inc updates."""
    user: Link[User]
    balance: int = 0

    class Settings:
        name = "credit_balances"
        indexes = [[("user", 1)]]
