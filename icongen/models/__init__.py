from icongen.models.user import User
from icongen.models.credit_balance import CreditBalance
from icongen.models.credit_ledger import CreditLedgerEntry
from icongen.models.icon import Icon
from icongen.models.audit_log import AuditLog

__all__ = [
    "User",
    "CreditBalance",
    "CreditLedgerEntry",
    "Icon",
    "AuditLog",
]
