# src/dailyquest/core/ports.py

"""
Ports (interfaces) used by the core.

The quest engine depends on Protocols instead of concrete implementations.
This keeps storage and time swappable and makes day-boundary testing easy.
"""

from __future__ import annotations

from datetime import date, datetime, tzinfo
from typing import Any, Protocol

JSONValue = Any
# Anything json.dumps accepts: dict / list / str / int / float / bool / None.


class KeyValueStore(Protocol):
    """
    Persistence collaborator: a flat key -> JSON document store.

    Implementations must never raise on corrupt data; a value that cannot be
    decoded is treated as missing.
    """

    def get(self, key: str) -> JSONValue | None: ...
    def set(self, key: str, value: JSONValue) -> None: ...
    def delete(self, key: str) -> None: ...
    def keys(self, prefix: str = "") -> list[str]: ...


class Clock(Protocol):
    """
    Source of "now" for the engine.

    Day boundaries are local calendar dates in `tz`; stored timestamps are UTC.
    """

    @property
    def tz(self) -> tzinfo: ...

    def now(self) -> datetime: ...
    def today(self) -> date: ...
    def local_date(self, timestamp: str | None) -> date | None: ...
