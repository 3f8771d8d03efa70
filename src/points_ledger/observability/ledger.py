from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class LedgerSnapshot:
    transactions: Dict[str, int]
    points: Dict[str, int]
    quarantine: Dict[str, int]
    redemptions: Dict[str, int]
    rejections: Dict[str, int]

    def as_dict(self) -> Dict[str, object]:
        return {
            "transactions": dict(self.transactions),
            "points": dict(self.points),
            "quarantine": dict(self.quarantine),
            "redemptions": dict(self.redemptions),
            "rejections": dict(self.rejections),
        }


class LedgerObservabilityStore:
    """Collect points-ledger counters for dashboards and alerting."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._transactions: Dict[str, int] = defaultdict(int)
        self._points: Dict[str, int] = defaultdict(int)
        self._quarantine: Dict[str, int] = defaultdict(int)
        self._redemptions: Dict[str, int] = defaultdict(int)
        self._rejections: Dict[str, int] = defaultdict(int)

    def record_transaction(self, kind: str, amount: int) -> None:
        with self._lock:
            self._transactions[kind] += 1
            self._points[kind] += amount

    def record_quarantine_toggle(self, suspicious: bool) -> None:
        with self._lock:
            self._quarantine["flagged" if suspicious else "cleared"] += 1

    def record_redemption_transition(self, settled: bool) -> None:
        with self._lock:
            self._redemptions["settled" if settled else "reopened"] += 1

    def record_rejection(self, operation: str, error_code: str) -> None:
        with self._lock:
            self._rejections[f"{operation}:{error_code}"] += 1

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(
                transactions=dict(self._transactions),
                points=dict(self._points),
                quarantine=dict(self._quarantine),
                redemptions=dict(self._redemptions),
                rejections=dict(self._rejections),
            )

    def reset(self) -> None:
        with self._lock:
            self._transactions.clear()
            self._points.clear()
            self._quarantine.clear()
            self._redemptions.clear()
            self._rejections.clear()


_STORE = LedgerObservabilityStore()


def get_ledger_store() -> LedgerObservabilityStore:
    return _STORE


__all__ = ["get_ledger_store", "LedgerObservabilityStore", "LedgerSnapshot"]
