"""Recording of events against cluster objects."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

EventSink = Callable[[Any, str, str, str], None]


class EventType(str, enum.Enum):
    WARNING = "Warning"
    NORMAL = "Normal"


@dataclass(frozen=True)
class Event:
    obj: Any
    event_type: EventType
    reason: str
    message: str


@dataclass
class EventRecorder:
    """Keeps recorded events and forwards them to an optional sink."""

    component: str = ""
    sink: Optional[EventSink] = None
    events: list[Event] = field(default_factory=list)

    def record(self, event: Event) -> None:
        self.events.append(event)
        if self.sink is not None:
            self.sink(event.obj, event.event_type.value, event.reason, event.message)