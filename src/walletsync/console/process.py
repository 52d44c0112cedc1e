import logging
from typing import List

from walletsync.console.handler import (
    display_balance,
    display_status,
    display_transactions,
    handle_backup_command,
    handle_config_command,
    handle_passphrase_command,
    handle_send_command,
    handle_start_command,
    print_help,
    toggle_verbose_logging,
)
from walletsync.errors import LaunchFailure
from walletsync.wallet import WalletSyncEngine

log = logging.getLogger(__name__)


def _restart(engine: WalletSyncEngine) -> None:
    try:
        engine.restart()
    except LaunchFailure as e:
        print(f"ERROR: {e}")


def execute_command(engine: WalletSyncEngine, command: str, args: List[str]) -> bool:
    """
    Executes a single command from the user.

    :param engine: The wallet engine the console drives.
    :param command: The main command string (e.g., 'start', 'send').
    :param args: A list of arguments for the command.
    :return bool: True if the console should exit, False otherwise.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    command_map = {
        "start": lambda: handle_start_command(engine),
        "stop": engine.stop,
        "restart": lambda: _restart(engine),
        "status": lambda: display_status(engine),
        "balance": lambda: display_balance(engine),
        "transactions": lambda: display_transactions(engine, args),
        "send": lambda: handle_send_command(engine, args),
        "backup": lambda: handle_backup_command(engine, args),
        "passphrase": lambda: handle_passphrase_command(engine),
        "config": lambda: handle_config_command(args),
        "verbose": toggle_verbose_logging,
        "help": print_help,
    }

    if command == "exit":
        return True

    if command in command_map:
        command_map[command]()
    else:
        print(f"Unknown command: '{command}'. Type 'help' for a list of commands.")
    return False
