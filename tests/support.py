"""Shared fixtures: in-memory SQLite sessions, settings, and a fake Base RPC node."""
import os
from typing import Any, Dict, List, Optional

os.environ.setdefault("DATABASE_URL", "sqlite://")

from config.settings import Settings
from database import create_db_engine, create_session_factory
from services.chain.rpc_client import RpcClientError
from services.payments.tokens import TRANSFER_EVENT_TOPIC, PaymentToken

PAY_ADDRESS = "0x1111111111111111111111111111111111111111"
OTHER_ADDRESS = "0x2222222222222222222222222222222222222222"
SENDER = "0x3333333333333333333333333333333333333333"
ADMIN_KEY = "admin-secret"
JWT_SECRET = "test-jwt-secret"
SUPABASE_URL = "https://example.supabase.co"


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = dict(
        database_url="sqlite://",
        sponsored_payment_address=PAY_ADDRESS,
        subscription_payment_address=PAY_ADDRESS,
        admin_api_key=ADMIN_KEY,
        supabase_project_url=SUPABASE_URL,
        supabase_jwt_secret=JWT_SECRET,
    )
    values.update(overrides)
    return Settings(**values)


def make_session_factory(settings: Optional[Settings] = None):
    settings = settings or make_settings()
    return create_session_factory(create_db_engine(settings))


def tx_hash(n: int) -> str:
    return "0x" + format(n, "064x")


def _topic(address: str) -> str:
    return "0x" + "0" * 24 + address[2:].lower()


def transfer_log(token: PaymentToken, *, to: str, raw_amount: int, sender: str = SENDER) -> Dict[str, Any]:
    return {
        "address": token.contract.lower(),
        "topics": [TRANSFER_EVENT_TOPIC, _topic(sender), _topic(to)],
        "data": "0x" + format(raw_amount, "064x"),
    }


def receipt(logs: List[Dict[str, Any]], *, status: str = "0x1") -> Dict[str, Any]:
    return {"status": status, "logs": logs}


def whole(token: PaymentToken, amount: str) -> int:
    """Human amount ("299.00") as base units for *token*."""
    whole_part, _, frac = amount.partition(".")
    frac = (frac + "0" * token.decimals)[: token.decimals]
    return int(whole_part) * 10 ** token.decimals + int(frac or "0")


class FakeRpc:
    """Serves canned receipts by tx hash; raise_error simulates a dead node."""

    def __init__(self, receipts: Optional[Dict[str, Dict[str, Any]]] = None, raise_error: Optional[str] = None):
        self.receipts = dict(receipts or {})
        self.raise_error = raise_error
        self.calls: List[str] = []
        self.closed = False

    async def get_transaction_receipt(self, tx: str) -> Optional[Dict[str, Any]]:
        self.calls.append(tx)
        if self.raise_error:
            raise RpcClientError(self.raise_error)
        return self.receipts.get(tx)

    async def aclose(self) -> None:
        self.closed = True
