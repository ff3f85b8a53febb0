"""Port for "something changed" notifications from the change-log store."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

# Payloads are not trusted; receivers always re-fetch.
type ChangeCallback = Callable[[object], None]
type Unsubscribe = Callable[[], None]


@runtime_checkable
class ChangeSubscription(Protocol):
    def subscribe(self, callback: ChangeCallback) -> Unsubscribe: ...


__all__ = ["ChangeCallback", "ChangeSubscription", "Unsubscribe"]
