"""Injected observability sinks.

The chat service, the title graph and the client view accept a sink and report
lifecycle events to it. The default sink drops everything.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol

_event_logger = logging.getLogger("chatbridge.events")


@dataclass
class ObservedEvent:
    name: str
    properties: Dict[str, Any] = field(default_factory=dict)


class ObservabilitySink(Protocol):
    def record(self, name: str, **properties: Any) -> None:
        ...


class NullSink:
    def record(self, name: str, **properties: Any) -> None:
        return None


class LoggingSink:
    """Writes events to the ``chatbridge.events`` logger."""

    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    def record(self, name: str, **properties: Any) -> None:
        _event_logger.log(
            self.level,
            "%s %s",
            name,
            properties,
            extra={"event_name": name, "event_properties": properties},
        )


class RecordingSink:
    """Keeps a rolling buffer of recent events."""

    def __init__(self, max_events: int = 500):
        self._events: deque[ObservedEvent] = deque(maxlen=max_events)

    def record(self, name: str, **properties: Any) -> None:
        self._events.append(ObservedEvent(name=name, properties=dict(properties)))

    @property
    def events(self) -> List[ObservedEvent]:
        return list(self._events)

    def names(self) -> List[str]:
        return [e.name for e in self._events]
