import getpass
import psutil
import logging
from typing import List, Optional

from walletsync.config import effective_settings as config
from walletsync.errors import LaunchFailure
from walletsync.events import EventKind
from walletsync.wallet import Balance, EngineState, ReconcileResult, Transaction, TransferRecipient, WalletSyncEngine

log = logging.getLogger(__name__)

ATOMIC_UNITS_PER_COIN = 10 ** 12


def format_amount(amount: Optional[int]) -> str:
    """Formats an amount in atomic units as coins, '?' when unknown."""
    if amount is None:
        return "?"
    return f"{amount / ATOMIC_UNITS_PER_COIN:.12f}"


#* --- Event printers ---
def register_event_printers(engine: WalletSyncEngine) -> None:
    """Prints the engine's notifications on the console."""
    engine.events.subscribe(EventKind.PASSPHRASE_REQUESTED, _on_passphrase_requested)
    engine.events.subscribe(EventKind.ADDRESS_RECEIVED, lambda address: print(f"\nWallet address: {address}"))
    engine.events.subscribe(EventKind.BALANCE_CHANGING, _on_balance_changing)
    engine.events.subscribe(EventKind.TRANSACTION_RECEIVED, _on_transaction_received)
    engine.events.subscribe(EventKind.LEDGER_CHANGED, _on_ledger_changed)
    engine.events.subscribe(EventKind.HEALTH_CHANGED, _on_health_changed)

def _on_passphrase_requested(is_first_time: bool) -> None:
    if is_first_time:
        print("\nNo wallet found. Use 'passphrase' to choose the passphrase of the new wallet.")
    else:
        print("\nThe wallet rejected the passphrase. Use 'passphrase' to enter it again.")

def _on_balance_changing(balance: Balance) -> None:
    if balance.is_known:
        print(f"\nBalance: {format_amount(balance.available)} available / {format_amount(balance.total)} total")

def _on_transaction_received(transaction: Transaction) -> None:
    print(f"\nNew {transaction.type.value} transaction: {format_amount(transaction.amount)}")

def _on_ledger_changed(result: ReconcileResult) -> None:
    if result.stale_count:
        print(f"\nWARNING: the backend no longer reports {result.stale_count} known transactions.")

def _on_health_changed(is_healthy: bool) -> None:
    if is_healthy:
        print("\nWallet RPC is responding again.")
    else:
        print("\nWARNING: Wallet RPC is not responding. Displayed data may be stale.")


#* --- Commands ---
def prompt_passphrase(confirm: bool) -> Optional[str]:
    """Reads a passphrase without echo. Returns None if the confirmation does not match."""
    passphrase = getpass.getpass("Passphrase: ")
    if confirm and getpass.getpass("Repeat passphrase: ") != passphrase:
        print("Passphrases do not match.")
        return None
    return passphrase

def handle_start_command(engine: WalletSyncEngine) -> None:
    try:
        engine.start()
    except LaunchFailure as e:
        print(f"ERROR: {e}")
        return
    if engine.state is EngineState.AWAITING_PASSPHRASE:
        handle_passphrase_command(engine, confirm=True)

def handle_passphrase_command(engine: WalletSyncEngine, confirm: bool = False) -> None:
    """Asks for the passphrase and restarts the wallet with it."""
    passphrase = prompt_passphrase(confirm)
    if passphrase is None:
        return
    try:
        engine.set_passphrase(passphrase)
    except LaunchFailure as e:
        print(f"ERROR: {e}")

def handle_send_command(engine: WalletSyncEngine, args: List[str]) -> None:
    """Handles 'send <address> <amount> [payment_id] [mix_count] [fee]' with amounts in atomic units."""
    if len(args) < 2:
        print("Usage: send <address> <amount> [payment_id] [mix_count] [fee]")
        return
    try:
        recipient = TransferRecipient(address=args[0], amount=int(args[1]))
        mix_count = int(args[3]) if len(args) > 3 else 0
        fee = int(args[4]) if len(args) > 4 else 0
    except ValueError:
        print("Amounts, mix count and fee must be integers (atomic units).")
        return
    payment_id = args[2] if len(args) > 2 and args[2] != "-" else None

    if engine.send_transfer_split([recipient], payment_id, mix_count, fee):
        print("Transfer sent.")
    else:
        print("Transfer failed. Check the logs for details.")

def handle_backup_command(engine: WalletSyncEngine, args: List[str]) -> None:
    target = args[0] if args else None
    try:
        path = engine.backup(target).result()
    except OSError as e:
        print(f"Backup failed: {e}")
        return
    print(f"Wallet backed up to '{path}'.")

def display_transactions(engine: WalletSyncEngine, args: List[str]) -> None:
    transactions = engine.transactions
    try:
        count = int(args[0]) if args else 20
    except ValueError:
        count = 20

    print(f"\n--- Last {min(count, len(transactions))} of {len(transactions)} transactions ---")
    for transaction in transactions[-count:]:
        spent = " (spent)" if transaction.is_spent else ""
        print(f"  #{transaction.number:<5} {transaction.type.value:<8} {format_amount(transaction.amount):>20}{spent}  {transaction.tx_hash or ''}")
    print()

def display_balance(engine: WalletSyncEngine) -> None:
    balance = engine.balance
    print(f"\nAvailable: {format_amount(balance.available)}")
    print(f"Total:     {format_amount(balance.total)}\n")

def display_status(engine: WalletSyncEngine) -> None:
    """Displays the wallet engine state and the backend's resource usage."""
    wallet = engine.wallet_state
    print("\n--- Wallet Status ---")
    print(f"  State          : {engine.state.value.upper()}")
    print(f"  RPC available  : {'YES' if wallet.rpc_available else 'NO'}")
    print(f"  RPC healthy    : {'YES' if engine.is_healthy else 'NO'}")
    print(f"  Address        : {wallet.address or '-'}")
    print(f"  Transactions   : {len(engine.ledger)}")

    pid = engine.supervisor.pid
    if pid is None or not engine.supervisor.is_alive:
        print("  Backend        : STOPPED")
    else:
        try:
            p = psutil.Process(pid)
            cpu = p.cpu_percent(interval=0.1)
            mem = p.memory_info().rss
            print(f"  Backend        : PID {pid:<8} | Status: {p.status().upper()} | CPU: {cpu:.1f}% | MEM: {mem/1024/1024:.1f} MB")
        except psutil.NoSuchProcess:
            print(f"  Backend        : PID {pid:<8} | Status: STOPPED")
        except psutil.AccessDenied:
            print(f"  Backend        : PID {pid:<8} | Status: RUNNING (Access Denied)")
    print("-" * 21 + "\n")

def handle_config_command(args: List[str]) -> None:
    """Shows the modifiable settings or persists one with 'config set KEY VALUE'."""
    if not args or args[0].lower() == "show":
        print("\n--- Modifiable Configuration ---")
        for key in sorted(config.MODIFIABLE_SETTINGS):
            print(f"  {key} = {getattr(config, key, 'N/A')}")
        print("A restart is required for changes to apply.\n")
        return

    if args[0].lower() != "set" or len(args) < 3:
        print("Usage: config [show] | config set <KEY> <VALUE>")
        return

    key, value_str = args[1].upper(), " ".join(args[2:])
    if key not in config.MODIFIABLE_SETTINGS:
        print(f"Error: '{key}' is not a modifiable setting.")
        return

    original_value = getattr(config, key)
    try:
        value = type(original_value)(value_str) if original_value is not None else value_str
    except (TypeError, ValueError) as e:
        print(f"Could not convert '{value_str}' for '{key}': {e}")
        return

    setattr(config, key, value)
    config.save_overrides({k: getattr(config, k) for k in config.MODIFIABLE_SETTINGS})
    print(f"Setting '{key}' updated to '{value}'. Restart the console to apply it.")

def toggle_verbose_logging() -> None:
    """Toggles verbose (DEBUG level) logging for the console handler."""
    config.VERBOSE_LOGGING = not config.VERBOSE_LOGGING
    new_level = logging.DEBUG if config.VERBOSE_LOGGING else logging.INFO

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if type(handler) is logging.StreamHandler:
            handler.setLevel(new_level)
            print(f"Verbose console logging is now {'ON' if config.VERBOSE_LOGGING else 'OFF'}.")
            return
    print("Could not find console handler to modify level.")

def print_help():
    """Prints the main help text for the console."""
    print("\nAvailable commands:")
    print("  start                      - Start the wallet backend (asks for a passphrase for a new wallet).")
    print("  stop                       - Stop the wallet backend.")
    print("  restart                    - Stop and start the wallet backend.")
    print("  status                     - Show the wallet engine and backend status.")
    print("  balance                    - Show the wallet balance.")
    print("  transactions [n]           - Show the last n transactions (default 20).")
    print("  send <addr> <amount> [pid] [mix] [fee] - Send a transfer (amounts in atomic units).")
    print("  backup [path]              - Copy the wallet files to path or today's backup directory.")
    print("  passphrase                 - Enter the wallet passphrase and restart the backend.")
    print("  config [show|set K V]      - Show or change modifiable settings.")
    print("  verbose                    - Toggle detailed DEBUG log output in the console.")
    print("  exit                       - Shut the wallet down safely and exit.")
    print()
