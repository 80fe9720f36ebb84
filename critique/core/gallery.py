"""Paginated gallery projection of the annotation store."""

from dataclasses import dataclass
from datetime import datetime

import structlog

from critique.config import settings
from critique.core.annotations import AnnotationStore, Screenshot, StoreEvent, StoreEventKind, Tag

logger = structlog.get_logger(__name__)

DARK_TEXT = "#000000"
LIGHT_TEXT = "#ffffff"


def contrast_color(background: str) -> str:
    """Pick black or white text for a #rrggbb background by perceived luminance."""
    value = background.lstrip("#")
    red, green, blue = (int(value[i : i + 2], 16) / 255 for i in (0, 2, 4))
    luminance = 0.299 * red + 0.587 * green + 0.114 * blue
    return DARK_TEXT if luminance > 0.5 else LIGHT_TEXT


@dataclass(frozen=True)
class TagChip:
    """A tag as displayed on a gallery item."""

    tag_id: int
    name: str
    color: str
    text_color: str
    client_visible: bool

    @classmethod
    def from_tag(cls, tag: Tag) -> "TagChip":
        return cls(
            tag_id=tag.id,
            name=tag.name,
            color=tag.color,
            text_color=contrast_color(tag.color),
            client_visible=tag.client_visible,
        )


@dataclass(frozen=True)
class GalleryItem:
    """Display data for one screenshot card."""

    screenshot_id: int
    image_ref: str
    storage_key: str | None
    created_by: str
    created_at: datetime
    model_version: str
    comment_count: int
    tags: tuple[TagChip, ...]
    is_resolved: bool
    durably_stored: bool
    can_delete: bool


class GalleryRenderer:
    """
    Keeps an ordered list of gallery items in step with an AnnotationStore.

    A REORDER event rebuilds every item; a PATCH event rebuilds only the
    affected item in place. Only the first page is visible until show_more().
    """

    def __init__(self, store: AnnotationStore, page_size: int | None = None) -> None:
        self.store = store
        self.page_size = page_size or settings.gallery_rows * settings.gallery_columns
        self.expanded = False
        self.storage_notice = store.storage_degraded
        self.full_renders = 0
        self.patches = 0
        self._items: list[GalleryItem] = []
        self._unsubscribe = store.subscribe(self._on_event)
        self.render()

    def close(self) -> None:
        """Stop following the store."""
        self._unsubscribe()

    def _on_event(self, event: StoreEvent) -> None:
        if event.kind is StoreEventKind.REORDER:
            self.render()
        elif event.kind is StoreEventKind.PATCH and event.screenshot_id is not None:
            self.patch(event.screenshot_id)
        elif event.kind is StoreEventKind.STORAGE_DEGRADED:
            self.storage_notice = True

    def _build_item(self, screenshot: Screenshot) -> GalleryItem:
        chips = tuple(TagChip.from_tag(tag) for tag in self.store.tags_on(screenshot))
        return GalleryItem(
            screenshot_id=screenshot.id,
            image_ref=screenshot.image_ref,
            storage_key=screenshot.storage_key,
            created_by=screenshot.created_by,
            created_at=screenshot.created_at,
            model_version=screenshot.model_version,
            comment_count=len(screenshot.comments),
            tags=chips,
            is_resolved=screenshot.is_resolved,
            durably_stored=screenshot.durably_stored,
            can_delete=self.store.user.can_delete,
        )

    def render(self) -> None:
        """Rebuild every item from the store's ordered list."""
        self._items = [self._build_item(s) for s in self.store.ordered()]
        self.full_renders += 1
        logger.debug("gallery_rendered", items=len(self._items), expanded=self.expanded)

    def patch(self, screenshot_id: int) -> None:
        """Rebuild a single item without touching the rest of the list."""
        for index, item in enumerate(self._items):
            if item.screenshot_id == screenshot_id:
                self._items[index] = self._build_item(self.store.get(screenshot_id))
                self.patches += 1
                return
        logger.debug("gallery_patch_missed", screenshot_id=screenshot_id)
        self.render()

    @property
    def items(self) -> list[GalleryItem]:
        """All items in display order, including those behind show more."""
        return list(self._items)

    @property
    def visible_items(self) -> list[GalleryItem]:
        if self.expanded:
            return list(self._items)
        return self._items[: self.page_size]

    @property
    def hidden_count(self) -> int:
        return len(self._items) - len(self.visible_items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def show_more(self) -> int:
        """Reveal every remaining item. Returns how many became visible."""
        revealed = self.hidden_count
        self.expanded = True
        return revealed

    def collapse(self) -> None:
        """Return to showing only the first page."""
        self.expanded = False

    def available_tags(self) -> list[TagChip]:
        """Tags the current user can see and apply."""
        return [TagChip.from_tag(tag) for tag in self.store.usable_tags()]
