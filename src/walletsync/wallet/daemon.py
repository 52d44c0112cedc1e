import logging
import threading

log = logging.getLogger(__name__)


class DaemonStatus:
    """
    What the wallet engine reports back to the daemon side.

    A successful balance query proves the daemon served the wallet a
    consistent chain, so the blockchain may be saved from then on.
    """

    def __init__(self) -> None:
        self._savable = threading.Event()

    @property
    def is_blockchain_savable(self) -> bool:
        return self._savable.is_set()

    def mark_blockchain_savable(self) -> None:
        if not self._savable.is_set():
            log.debug("Blockchain marked as savable.")
        self._savable.set()
