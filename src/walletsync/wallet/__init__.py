"""
The wallet package.
Keeps a local model of the wallet (address, balance, transaction ledger)
in sync with the wallet backend run by the process supervisor.
"""
from typing import Optional

from walletsync.config import MergedSettings, PathSettings, RpcSettings, TimerSettings, effective_settings
from .daemon import DaemonStatus
from .ledger import ReconcileResult, TransactionLedger
from .manager import WalletSyncEngine
from .models import Balance, EngineState, Transaction, TransactionType, TransferRecipient, WalletState
from .rpc_client import WalletRpcClient


def create_wallet_engine(config: MergedSettings = effective_settings, daemon: Optional[DaemonStatus] = None) -> WalletSyncEngine:
    """Builds a WalletSyncEngine wired to the configured paths, RPC endpoints and timers."""
    rpc_settings = RpcSettings.from_config(config)
    return WalletSyncEngine(
        rpc_client=WalletRpcClient(rpc_settings),
        paths=PathSettings.from_config(config),
        rpc_settings=rpc_settings,
        timers=TimerSettings.from_config(config),
        daemon=daemon or DaemonStatus(),
    )


__all__ = [
    'WalletSyncEngine', 'WalletRpcClient', 'TransactionLedger', 'ReconcileResult', 'DaemonStatus',
    'Balance', 'EngineState', 'Transaction', 'TransactionType', 'TransferRecipient', 'WalletState',
    'create_wallet_engine',
]
