import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from icongen.core.config import get_settings
from icongen.models.audit_log import AuditLog
from icongen.models.credit_balance import CreditBalance
from icongen.models.credit_ledger import CreditLedgerEntry
from icongen.models.icon import Icon
from icongen.models.user import User

DOCUMENT_MODELS = [
    User,
    CreditBalance,
    CreditLedgerEntry,
    Icon,
    AuditLog,
]


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


def create_client(uri: str, **overrides) -> AsyncIOMotorClient:
    kwargs = {}
    if _use_tls(uri):
        # Atlas in Docker: tlsCAFile + tlsDisableOCSPEndpointCheck avoid TLSV1_ALERT_INTERNAL_ERROR
        kwargs["tlsCAFile"] = certifi.where()
        kwargs["tlsDisableOCSPEndpointCheck"] = True
    kwargs.update(overrides)
    return AsyncIOMotorClient(uri, **kwargs)


async def init_db(**client_overrides) -> AsyncIOMotorClient:
    settings = get_settings()
    client = create_client(settings.mongodb_uri, **client_overrides)
    database = client[settings.mongodb_db_name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    return client
