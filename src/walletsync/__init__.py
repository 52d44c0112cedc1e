"""
WalletSync: supervises a wallet backend process and keeps a local model of
the wallet synchronized with it over JSON-RPC.
"""

__version__ = "0.1.0"
