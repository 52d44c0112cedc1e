"""Data models for the wallet engine."""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple


class TransactionType(enum.Enum):
    UNKNOWN = "unknown"
    SEND = "send"
    RECEIVE = "receive"


class EngineState(enum.Enum):
    STOPPED = "stopped"
    AWAITING_PASSPHRASE = "awaiting_passphrase"
    STARTING = "starting"
    AWAITING_RPC = "awaiting_rpc"
    SYNCING = "syncing"


@dataclass(frozen=True)
class Balance:
    """Wallet balance in atomic units. None means not known yet."""

    available: Optional[int] = None
    total: Optional[int] = None

    @property
    def is_known(self) -> bool:
        return self.available is not None and self.total is not None


@dataclass(frozen=True)
class Transaction:
    """One ledger entry. `number` is its 1-based position, reassigned on every reconciliation."""

    amount: int
    type: TransactionType = TransactionType.UNKNOWN
    payment_id: Optional[str] = None
    number: int = 0
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def tx_hash(self) -> Optional[str]:
        return self.raw.get("tx_hash")

    @property
    def is_spent(self) -> bool:
        return bool(self.raw.get("spent", False))


@dataclass(frozen=True)
class TransferRecipient:
    address: str
    amount: int


@dataclass(frozen=True)
class TransferRequest:
    """Parameters of a single split-transfer RPC call."""

    recipients: Tuple[TransferRecipient, ...]
    payment_id: Optional[str] = None
    mix_count: int = 0
    fee: int = 0

    @classmethod
    def build(
        cls,
        recipients: Sequence[TransferRecipient],
        payment_id: Optional[str],
        mix_count: int,
        fee: int,
    ) -> "TransferRequest":
        return cls(recipients=tuple(recipients), payment_id=payment_id, mix_count=mix_count, fee=fee)

    @property
    def total_amount(self) -> int:
        return sum(recipient.amount for recipient in self.recipients)


@dataclass(frozen=True)
class WalletState:
    """Snapshot of what the engine currently knows about the wallet."""

    address: Optional[str]
    balance: Balance
    rpc_available: bool
