from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class LedgerSnapshot:
    operations: Dict[str, int]
    rejections: Dict[str, Dict[str, int]]
    points: Dict[str, int]
    badge_dispatch: Dict[str, int]

    def as_dict(self) -> Dict[str, object]:
        return {
            "operations": dict(self.operations),
            "rejections": {key: dict(value) for key, value in self.rejections.items()},
            "points": dict(self.points),
            "badge_dispatch": dict(self.badge_dispatch),
        }


class LedgerObservabilityStore:
    """Collect ledger mutation telemetry for dashboards and alerting."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._operations: Dict[str, int] = defaultdict(int)
        self._rejections: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._points: Dict[str, int] = defaultdict(int)
        self._badge_dispatch: Dict[str, int] = defaultdict(int)

    def record_operation(self, operation: str) -> None:
        with self._lock:
            self._operations[operation] += 1

    def record_rejection(self, operation: str, code: str) -> None:
        with self._lock:
            self._rejections[operation][code] += 1

    def record_points(self, *, awarded: int = 0, redeemed: int = 0) -> None:
        with self._lock:
            if awarded:
                self._points["awarded"] += awarded
            if redeemed:
                self._points["redeemed"] += redeemed

    def record_badge_dispatch(self, outcome: str) -> None:
        with self._lock:
            self._badge_dispatch[outcome] += 1

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            operations = dict(self._operations)
            rejections = {key: dict(value) for key, value in self._rejections.items()}
            points = dict(self._points)
            badge_dispatch = dict(self._badge_dispatch)
        return LedgerSnapshot(
            operations=operations,
            rejections=rejections,
            points=points,
            badge_dispatch=badge_dispatch,
        )

    def reset(self) -> None:
        with self._lock:
            self._operations.clear()
            self._rejections.clear()
            self._points.clear()
            self._badge_dispatch.clear()


_STORE = LedgerObservabilityStore()


def get_ledger_store() -> LedgerObservabilityStore:
    return _STORE


__all__ = ["get_ledger_store", "LedgerObservabilityStore", "LedgerSnapshot"]
