import sys
import logging
import threading
import setproctitle

# Basic console logger for messages BEFORE full setup is complete.
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)-8s - [console] - %(message)s',
    stream=sys.stdout
)
log = logging.getLogger("console")

import walletsync.console as console
from walletsync.config import effective_settings as config
from walletsync.log.setup import setup_logging
from walletsync.wallet import create_wallet_engine

PROCESS_TITLE = "WalletSync - Supervisor"
CONSOLE_LOCK = threading.Lock()


def main() -> None:
    """The main entry point for the wallet console."""
    setproctitle.setproctitle(PROCESS_TITLE)
    setup_logging(logging.DEBUG if config.VERBOSE_LOGGING else logging.INFO)

    engine = create_wallet_engine()
    console.register_event_printers(engine)

    with engine:
        # Non-interactive mode for one-off commands
        if len(sys.argv) > 1:
            command, args = sys.argv[1].lower(), sys.argv[2:]
            console.execute_command(engine, command, args)
            return

        print("--- Wallet Management Console ---")
        print("Type 'help' for a list of commands.")
        while True:
            try:
                # The input prompt must be outside the lock to not block background threads
                command_line_str = input("> ")
                with CONSOLE_LOCK:
                    if not command_line_str.strip():
                        continue
                    command_line = command_line_str.strip().split()
                    command, args = command_line[0].lower(), command_line[1:]

                    if console.execute_command(engine, command, args):
                        break

            except (KeyboardInterrupt, EOFError):
                with CONSOLE_LOCK:
                    log.warning("\nExiting console due to interrupt.")
                    break
            except Exception as e:
                with CONSOLE_LOCK:
                    log.error(f"An unexpected error occurred in the console: {e}", exc_info=True)

    print("Wallet shut down. See you next time!")


if __name__ == "__main__":
    main()
