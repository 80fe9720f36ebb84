"""Change notifications published by the annotation store."""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum


class StoreEventKind(str, Enum):
    """What kind of redraw a change requires."""

    REORDER = "reorder"
    PATCH = "patch"
    STORAGE_DEGRADED = "storage_degraded"


@dataclass(frozen=True)
class StoreEvent:
    """A single store change."""

    kind: StoreEventKind
    screenshot_id: int | None = None
    fields: tuple[str, ...] = field(default_factory=tuple)


StoreListener = Callable[[StoreEvent], None]
