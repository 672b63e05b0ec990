"""Period transaction counting: durable counts plus per-scope transient increments"""

import logging
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set, Tuple

from charge_engine.domain.ports import DurableCounter
from charge_engine.utils.date_utils import month_start, next_month_start, trailing_days_window

CountKey = Tuple[int, str]
SnapshotKey = Tuple[int, str, datetime, datetime]


@dataclass(frozen=True)
class CountWindow:
    """
    Counting period for threshold-based rules.

    `rolling_days=None` is the calendar month containing the transaction;
    otherwise the trailing `rolling_days` days up to and including its day.
    """

    rolling_days: Optional[int] = None

    @classmethod
    def calendar_month(cls) -> "CountWindow":
        return cls()

    @classmethod
    def rolling(cls, days: int) -> "CountWindow":
        if days <= 0:
            raise ValueError("Rolling window must cover at least one day")
        return cls(rolling_days=days)

    def bounds(self, as_of: datetime) -> Tuple[datetime, datetime]:
        """Half-open [start, end) range of the window containing `as_of`"""
        if self.rolling_days is None:
            return month_start(as_of), next_month_start(as_of)
        return trailing_days_window(as_of, self.rolling_days)

    def describe(self) -> str:
        if self.rolling_days is None:
            return "this month"
        return f"in the last {self.rolling_days} days"


MONTHLY = CountWindow.calendar_month()


class ScopeClosedError(RuntimeError):
    pass


class ChargeScope:
    """
    Unit-of-work state for one calculation, bulk run or test run.

    Holds transient (not yet persisted) transaction increments, a snapshot of
    durable counts already read in this scope, the transactions this scope has
    committed, and the transaction ids seen. Pass it explicitly through every
    call; close it when the operation ends.
    """

    def __init__(self, label: Optional[str] = None):
        self.scope_id = label or uuid.uuid4().hex
        self._lock = threading.Lock()
        self._transient: Dict[CountKey, List[datetime]] = defaultdict(list)
        self._committed: Dict[CountKey, List[datetime]] = defaultdict(list)
        self._durable: Dict[SnapshotKey, int] = {}
        self._seen_ids: Set[str] = set()
        self._closed = False

    def __enter__(self) -> "ChargeScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Discard all transient state"""
        with self._lock:
            self._transient.clear()
            self._committed.clear()
            self._durable.clear()
            self._seen_ids.clear()
            self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise ScopeClosedError(f"Charge scope {self.scope_id} is closed")

    @staticmethod
    def _in_window(stamps: List[datetime], start: datetime, end: datetime) -> int:
        return sum(1 for stamp in stamps if start <= stamp < end)

    def record(self, customer_id: int, transaction_type: str, timestamp: datetime, transaction_id: Optional[str] = None) -> None:
        with self._lock:
            self._ensure_open()
            self._transient[(customer_id, transaction_type)].append(timestamp)
            if transaction_id:
                self._seen_ids.add(transaction_id)

    def mark_committed(self, customer_id: int, transaction_type: str, timestamp: datetime) -> None:
        with self._lock:
            self._ensure_open()
            self._committed[(customer_id, transaction_type)].append(timestamp)

    def transient_count(self, customer_id: int, transaction_type: str, start: datetime, end: datetime) -> int:
        with self._lock:
            self._ensure_open()
            return self._in_window(self._transient.get((customer_id, transaction_type), []), start, end)

    def committed_count(self, customer_id: int, transaction_type: str, start: datetime, end: datetime) -> int:
        with self._lock:
            self._ensure_open()
            return self._in_window(self._committed.get((customer_id, transaction_type), []), start, end)

    def has_seen(self, transaction_id: str) -> bool:
        with self._lock:
            self._ensure_open()
            return transaction_id in self._seen_ids

    def durable_snapshot(self, key: SnapshotKey, load: Callable[[], int]) -> int:
        """Durable count for `key`, loaded at most once per scope"""
        with self._lock:
            self._ensure_open()
            if key in self._durable:
                return self._durable[key]

        # Load outside the lock; a concurrent loader for the same key keeps the first value
        value = load()
        with self._lock:
            self._ensure_open()
            return self._durable.setdefault(key, value)


class PeriodCounter:
    """Combines durable counts with the scope's transient increments"""

    def __init__(self, durable: DurableCounter):
        self.durable = durable

    def record(
        self,
        scope: ChargeScope,
        customer_id: int,
        transaction_type: str,
        timestamp: datetime,
        transaction_id: Optional[str] = None,
    ) -> None:
        """Increment the transient count only; durable counts change on commit"""
        scope.record(customer_id, transaction_type, timestamp, transaction_id)

    def mark_committed(self, scope: ChargeScope, customer_id: int, transaction_type: str, timestamp: datetime) -> None:
        """Note a transaction persisted inside `scope` so it is not counted twice"""
        scope.mark_committed(customer_id, transaction_type, timestamp)

    def count(
        self,
        scope: ChargeScope,
        customer_id: int,
        transaction_type: str,
        window: CountWindow,
        as_of: datetime,
    ) -> int:
        """Transactions of this type in the window, including any recorded in `scope`"""
        start, end = window.bounds(as_of)

        def load_durable() -> int:
            # Rows this scope already committed are also in its transient counts
            persisted = self.durable.durable_count(customer_id, transaction_type, start, end)
            return max(persisted - scope.committed_count(customer_id, transaction_type, start, end), 0)

        durable = scope.durable_snapshot((customer_id, transaction_type, start, end), load_durable)
        transient = scope.transient_count(customer_id, transaction_type, start, end)
        logging.debug(
            "Period count resolved",
            extra={
                "customer_id": customer_id,
                "transaction_type": transaction_type,
                "durable_count": durable,
                "transient_count": transient,
                "scope_id": scope.scope_id,
            },
        )
        return durable + transient
