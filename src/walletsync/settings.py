"""
This module contains the default configuration settings for WalletSync.
It defines paths, RPC endpoints, timer periods and logging configuration.
Values can be overridden through environment variables (or a `.env` file),
and the keys listed in MODIFIABLE_SETTINGS through `overrides.json`.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
BASE_DIR = pathlib.Path(__file__).resolve().parent.parent.parent  # Project Root
DATA_DIR = pathlib.Path(os.getenv("WALLETSYNC_DATA_DIR", str(BASE_DIR / "data")))
LOGS_DIR = DATA_DIR / "logs"
OVERRIDES_JSON_PATH = DATA_DIR / "overrides.json"

#* --- Wallet Paths ---
WALLET_EXECUTABLE_PATH = pathlib.Path(os.getenv("WALLET_EXECUTABLE_PATH", str(BASE_DIR / "bin" / "simplewallet")))
WALLET_DATA_FILE = pathlib.Path(os.getenv("WALLET_DATA_FILE", str(DATA_DIR / "wallets" / "wallet.bin")))
WALLET_BACKUP_DIR = pathlib.Path(os.getenv("WALLET_BACKUP_DIR", str(DATA_DIR / "backups")))

#* --- RPC Settings ---
RPC_HOST_DEFAULT_LOCALHOST = "127.0.0.1"
RPC_HOST = os.getenv("RPC_HOST", RPC_HOST_DEFAULT_LOCALHOST)
RPC_DAEMON_PORT = int(os.getenv("RPC_DAEMON_PORT", "18081"))
RPC_WALLET_PORT = int(os.getenv("RPC_WALLET_PORT", "18082"))
RPC_TIMEOUT = 20  # seconds, per HTTP request
RPC_FAILURE_THRESHOLD = 3  # consecutive failures before the wallet is reported unhealthy

#* --- Process Supervision ---
PROCESS_PING_PERIOD = 1            # seconds between keep-alive lines
CONNECTION_COUNT_QUERY_PERIOD = 5  # seconds between 'print_cn' queries
GRACEFUL_SHUTDOWN_TIMEOUT = 30     # seconds before force-killing

#* --- Wallet Timers ---
RPC_CHECK_AVAILABILITY_DUE_TIME = 1  # seconds after launch before the first port check
RPC_CHECK_AVAILABILITY_PERIOD = 1
WALLET_REFRESH_PERIOD = 10
WALLET_SAVE_PERIOD = 120

#* --- Logging ---
LOG_FILE_PATH = LOGS_DIR / "walletsync.log"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 3
VERBOSE_LOGGING = os.getenv("WALLETSYNC_VERBOSE", "False").lower() in ('true', '1', 't')

#* --- MODIFIABLE SETTINGS (Changeable at runtime via 'config' overrides) ---
MODIFIABLE_SETTINGS = {
    # Paths
    "WALLET_EXECUTABLE_PATH", "WALLET_DATA_FILE", "WALLET_BACKUP_DIR",
    # RPC
    "RPC_HOST", "RPC_DAEMON_PORT", "RPC_WALLET_PORT", "RPC_FAILURE_THRESHOLD",
    # Timers
    "WALLET_REFRESH_PERIOD", "WALLET_SAVE_PERIOD",
}
