import logging
import threading
from dataclasses import dataclass, field, replace
from typing import List, Sequence

from walletsync.wallet.models import Transaction

log = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """
    Outcome of merging a fetched transaction list into the ledger.

    `stale_count` is the number of ledger entries the backend did not return
    this time. Those entries are kept untouched.
    """

    updated: List[Transaction] = field(default_factory=list)
    appended: List[Transaction] = field(default_factory=list)
    stale_count: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.updated or self.appended)


class TransactionLedger:
    """
    Ordered, append-mostly list of known transactions.

    Entries keep the order the backend first reported them in. Only `clear()`
    can make the ledger shorter. Readers get copies through `snapshot()`.
    """

    def __init__(self) -> None:
        self._items: List[Transaction] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def snapshot(self) -> List[Transaction]:
        with self._lock:
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def reconcile(self, fetched: Sequence[Transaction]) -> ReconcileResult:
        """
        Merges the full list returned by the backend into the ledger.

        Indices already known are overwritten in place, the rest is appended.
        Every entry is renumbered to its 1-based position.

        :param fetched: The complete transaction list from the latest poll.
        :return: What was updated and appended.
        """
        result = ReconcileResult()
        with self._lock:
            known = len(self._items)
            for i in range(min(known, len(fetched))):
                entry = replace(fetched[i], number=i + 1)
                self._items[i] = entry
                result.updated.append(entry)

            for i in range(known, len(fetched)):
                entry = replace(fetched[i], number=i + 1)
                self._items.append(entry)
                result.appended.append(entry)

            if len(fetched) < known:
                result.stale_count = known - len(fetched)

        if result.stale_count:
            log.warning(
                f"Backend returned {len(fetched)} transactions but {known} are known. "
                f"Keeping {result.stale_count} stale entries."
            )
        return result
