import logging
from typing import Any, Dict, List


class EventSink:
    """Receives structured pipeline events: a level, an event name and fields."""

    def emit(self, level: int, event: str, **fields: Any) -> None:  # pragma: no cover - interface placeholder
        raise NotImplementedError


class NullEventSink(EventSink):
    def emit(self, level: int, event: str, **fields: Any) -> None:
        return None


class LoggingEventSink(EventSink):
    def __init__(self, logger: logging.Logger = None) -> None:
        self.logger = logger or logging.getLogger("connectors.document_parser")

    def emit(self, level: int, event: str, **fields: Any) -> None:
        if not self.logger.isEnabledFor(level):
            return
        rendered = " ".join(f"{key}={value}" for key, value in fields.items())
        self.logger.log(level, "%s %s", event, rendered, extra={"event": event, "fields": fields})


class RecordingEventSink(EventSink):
    """Keeps every event in memory and forwards it to an optional inner sink."""

    def __init__(self, inner: EventSink = None) -> None:
        self.inner = inner
        self.events: List[Dict[str, Any]] = []

    def emit(self, level: int, event: str, **fields: Any) -> None:
        self.events.append(
            {"level": logging.getLevelName(level), "event": event, **fields}
        )
        if self.inner is not None:
            self.inner.emit(level, event, **fields)

    def named(self, event: str) -> List[Dict[str, Any]]:
        return [entry for entry in self.events if entry["event"] == event]
