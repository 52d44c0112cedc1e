import shutil
import logging
from datetime import date
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

BACKUP_DIR_DATE_FORMAT = "%Y-%m-%d"


def default_backup_dir(backup_root: Path, today: Optional[date] = None) -> Path:
    """Returns the date-stamped backup directory for `today`."""
    today = today or date.today()
    return backup_root / today.strftime(BACKUP_DIR_DATE_FORMAT)


def backup_wallet_files(wallet_data_file: Path, backup_root: Path, target: Optional[Path] = None) -> Path:
    """
    Copies every file sharing the wallet's base name into the backup directory.

    With the wallet stored as `wallet.bin`, files such as `wallet.bin`,
    `wallet.bin.keys` and `wallet.bin.address.txt` are copied. Existing copies
    in the target directory are overwritten.

    :param wallet_data_file: Path of the wallet data file.
    :param backup_root: Root under which date-stamped directories are created.
    :param target: Explicit target directory, overrides the date-stamped default.
    :return: The directory the files were copied to.
    """
    target = Path(target) if target is not None else default_backup_dir(backup_root)
    target.mkdir(parents=True, exist_ok=True)

    wallet_name = wallet_data_file.stem
    source_dir = wallet_data_file.parent
    copied = 0
    for source in sorted(source_dir.glob(f"{wallet_name}*")):
        if not source.is_file():
            continue
        shutil.copy2(source, target / source.name)
        copied += 1

    log.info(f"Backed up {copied} wallet files from '{source_dir}' to '{target}'.")
    return target
