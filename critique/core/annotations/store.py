"""Annotation store: the single owner of screenshot and tag state for a session."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from PIL import Image
from pydantic import ValidationError

from critique.config import settings
from critique.core.annotations.events import StoreEvent, StoreEventKind, StoreListener
from critique.core.annotations.models import (
    DEFAULT_TAGS,
    TAG_NAME_MAX_LENGTH,
    Comment,
    Screenshot,
    Tag,
    normalize_color,
)
from critique.core.permissions import Action, can_apply_tag, can_delete_comment, is_allowed
from critique.core.users import User
from critique.storage.image_store import ImageStore
from critique.storage.local_cache import LocalCache
from critique.utils.exceptions import (
    AnnotationValidationError,
    PermissionDeniedError,
    ScreenshotNotFoundError,
    TagNotFoundError,
)
from critique.utils.imaging import encode_jpeg, to_data_uri

logger = structlog.get_logger(__name__)

TAGS_CACHE_KEY = "screenshot-tags"
METADATA_KEY_PREFIX = "screenshots_metadata_"


def default_remote_timeout() -> float:
    """Upper bound for an image store call: every attempt plus the backoff between them."""
    retries = settings.storage_max_retries
    return settings.storage_timeout_seconds * (retries + 1) + 0.5 * (2**retries - 1)


def metadata_cache_key(job_id: str) -> str:
    """Cache key holding a job's screenshot records."""
    return f"{METADATA_KEY_PREFIX}{job_id}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ClearResult:
    """Summary of a clear-all run."""

    removed: int
    remote_deleted: int
    remote_failed: int
    inline_only: int


class AnnotationStore:
    """
    In-memory screenshots, comments and tag catalog for one job.

    Mutations are validated and permission-checked before anything changes,
    then written through to the local cache and announced to subscribers.
    Remote image storage is best-effort: uploads fall back to inline data URIs
    and failed remote deletions are logged without blocking local changes.
    """

    def __init__(
        self,
        job_id: str,
        user: User,
        image_store: ImageStore,
        cache: LocalCache,
        jpeg_quality: int | None = None,
        clock: Callable[[], datetime] | None = None,
        remote_timeout: float | None = None,
    ) -> None:
        """
        Initialize an empty store. Call load() to hydrate it from the cache.

        Args:
            job_id: Session key grouping the screenshots
            user: Acting reviewer, supplied by the auth collaborator
            image_store: Remote persistence for image bytes
            cache: Local key-value cache
            jpeg_quality: JPEG quality for uploads (defaults to settings.jpeg_quality)
            clock: Time source returning aware datetimes
            remote_timeout: Seconds allowed for one image store call, retries included
                (derived from the storage timeout and retry settings by default)
        """
        self.job_id = job_id
        self.user = user
        self.image_store = image_store
        self.cache = cache
        self.jpeg_quality = jpeg_quality or settings.jpeg_quality
        self._clock = clock or _utcnow
        self.remote_timeout = (
            remote_timeout if remote_timeout is not None else default_remote_timeout()
        )
        self._screenshots: list[Screenshot] = []
        self._tags: list[Tag] = []
        self._listeners: list[StoreListener] = []
        self._last_id = 0
        self.storage_degraded = False

    @classmethod
    async def open(
        cls,
        job_id: str,
        user: User,
        image_store: ImageStore,
        cache: LocalCache,
        **kwargs: object,
    ) -> "AnnotationStore":
        """Create a store and load its state from the cache."""
        store = cls(job_id, user, image_store, cache, **kwargs)  # type: ignore[arg-type]
        await store.load()
        return store

    # Loading and queries

    async def load(self) -> None:
        """Hydrate the tag catalog and this job's screenshots from the cache."""
        raw_tags = await self.cache.get_json(TAGS_CACHE_KEY)
        if raw_tags is None:
            self._tags = [tag.model_copy() for tag in DEFAULT_TAGS]
            await self._save_tags()
            logger.info("tag_catalog_seeded", tags=len(self._tags))
        else:
            self._tags = self._parse_records(Tag, raw_tags, TAGS_CACHE_KEY)

        raw_screenshots = await self.cache.get_json(metadata_cache_key(self.job_id), default=[])
        self._screenshots = [
            s
            for s in self._parse_records(Screenshot, raw_screenshots, self._metadata_key)
            if s.job_id == self.job_id
        ]
        for screenshot in self._screenshots:
            ids = [screenshot.id] + [c.id for c in screenshot.comments]
            self._last_id = max([self._last_id, *ids])

        logger.info(
            "store_loaded",
            job_id=self.job_id,
            screenshots=len(self._screenshots),
            tags=len(self._tags),
        )
        self._publish(StoreEvent(StoreEventKind.REORDER))

    @staticmethod
    def _parse_records(model: type, raw: object, key: str) -> list:  # type: ignore[type-arg]
        if not isinstance(raw, list):
            logger.warning("cache_entry_malformed", key=key)
            return []
        records = []
        for item in raw:
            try:
                records.append(model.model_validate(item))  # type: ignore[attr-defined]
            except ValidationError as e:
                logger.warning("cache_record_skipped", key=key, error=str(e))
        return records

    @property
    def _metadata_key(self) -> str:
        return metadata_cache_key(self.job_id)

    @property
    def screenshots(self) -> list[Screenshot]:
        """Screenshots in creation order."""
        return list(self._screenshots)

    @property
    def tags(self) -> list[Tag]:
        """The full tag catalog."""
        return list(self._tags)

    def usable_tags(self) -> list[Tag]:
        """Tags the acting user may see and apply."""
        return [t for t in self._tags if can_apply_tag(self.user.role, t.client_visible)]

    def tags_on(self, screenshot: Screenshot) -> list[Tag]:
        """Tags applied to a screenshot that the acting user may see, in application order."""
        usable = {t.id: t for t in self.usable_tags()}
        return [usable[tag_id] for tag_id in screenshot.tag_ids if tag_id in usable]

    def get(self, screenshot_id: int) -> Screenshot:
        """
        Return a screenshot by id.

        Raises:
            ScreenshotNotFoundError: If the id is not part of this job
        """
        for screenshot in self._screenshots:
            if screenshot.id == screenshot_id:
                return screenshot
        raise ScreenshotNotFoundError(f"Screenshot {screenshot_id} not found in job {self.job_id}")

    def get_tag(self, tag_id: int) -> Tag:
        """
        Return a catalog tag by id.

        Raises:
            TagNotFoundError: If the tag is not in the catalog
        """
        for tag in self._tags:
            if tag.id == tag_id:
                return tag
        raise TagNotFoundError(f"Tag {tag_id} not found")

    def ordered(self) -> list[Screenshot]:
        """Unresolved first, newest first within each group; ties keep creation order."""
        return sorted(
            self._screenshots,
            key=lambda s: (s.is_resolved, -s.created_at.timestamp()),
        )

    # Subscriptions

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error("store_listener_failed", kind=event.kind.value, error=str(e))

    # Screenshots

    def _next_id(self, now: datetime) -> int:
        candidate = int(now.timestamp() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return candidate

    async def create(
        self,
        image: Image.Image,
        model_version: str,
        capture_strategy: str | None = None,
    ) -> Screenshot:
        """
        Store a captured image and add its record to the job.

        When remote storage is unavailable the image is embedded as a data URI
        and the record is flagged as not durably stored.

        Args:
            image: Captured region
            model_version: Label of the 3D asset active at capture time
            capture_strategy: Name of the strategy that produced the image

        Returns:
            The new Screenshot
        """
        now = self._clock()
        screenshot_id = self._next_id(now)
        data = encode_jpeg(image, quality=self.jpeg_quality)
        key = f"screenshots/{self.job_id}/screenshot-{screenshot_id}.jpg"

        try:
            image_ref: str = await asyncio.wait_for(
                self.image_store.put(key, data, "image/jpeg"), timeout=self.remote_timeout
            )
            storage_key: str | None = key
            durable = True
        except Exception as e:
            image_ref = to_data_uri(data, "image/jpeg")
            storage_key = None
            durable = False
            self._mark_degraded(str(e) or type(e).__name__)

        screenshot = Screenshot(
            id=screenshot_id,
            job_id=self.job_id,
            image_ref=image_ref,
            storage_key=storage_key,
            durably_stored=durable,
            created_at=now,
            created_by=self.user.name,
            created_by_role=self.user.role,
            model_version=model_version,
            capture_strategy=capture_strategy,
        )
        self._screenshots.append(screenshot)
        await self._save_screenshots()

        logger.info(
            "screenshot_created",
            screenshot_id=screenshot_id,
            job_id=self.job_id,
            durably_stored=durable,
            size=len(data),
        )
        self._publish(StoreEvent(StoreEventKind.REORDER, screenshot_id))
        return screenshot

    def _mark_degraded(self, reason: str) -> None:
        logger.warning("storage_degraded", job_id=self.job_id, error=reason)
        if not self.storage_degraded:
            self.storage_degraded = True
            self._publish(StoreEvent(StoreEventKind.STORAGE_DEGRADED))

    async def set_resolved(self, screenshot_id: int, resolved: bool) -> Screenshot:
        """
        Mark a screenshot's thread resolved or open again. Admin only.

        Raises:
            PermissionDeniedError: If the acting role cannot resolve
            ScreenshotNotFoundError: If the id is unknown
        """
        self._require(Action.RESOLVE, "change resolution status")
        screenshot = self.get(screenshot_id)
        if screenshot.is_resolved == resolved:
            return screenshot
        screenshot.is_resolved = resolved
        await self._save_screenshots()
        logger.info("screenshot_resolution_changed", screenshot_id=screenshot_id, resolved=resolved)
        self._publish(StoreEvent(StoreEventKind.REORDER, screenshot_id, ("is_resolved",)))
        return screenshot

    async def delete(self, screenshot_id: int) -> bool:
        """
        Delete a screenshot. Admin only.

        The local record is always removed; the remote image is deleted on a
        best-effort basis.

        Returns:
            True if the remote image was deleted as well

        Raises:
            PermissionDeniedError: If the acting role cannot delete screenshots
            ScreenshotNotFoundError: If the id is unknown
        """
        self._require(Action.DELETE_SCREENSHOT, "delete screenshots")
        screenshot = self.get(screenshot_id)

        remote_deleted = False
        if screenshot.durably_stored:
            try:
                remote_deleted = await asyncio.wait_for(
                    self.image_store.delete(screenshot.image_ref), timeout=self.remote_timeout
                )
            except Exception as e:
                logger.warning(
                    "remote_delete_failed",
                    screenshot_id=screenshot_id,
                    error=str(e) or type(e).__name__,
                )

        self._screenshots = [s for s in self._screenshots if s.id != screenshot_id]
        await self._save_screenshots()
        logger.info(
            "screenshot_deleted",
            screenshot_id=screenshot_id,
            remote_deleted=remote_deleted,
        )
        self._publish(StoreEvent(StoreEventKind.REORDER, screenshot_id))
        return remote_deleted

    async def clear_all(self) -> ClearResult:
        """
        Delete every screenshot in the job. Admin only.

        Remote deletions run concurrently and independently; individual
        failures are logged and counted, never raised.

        Raises:
            PermissionDeniedError: If the acting role cannot clear the gallery
        """
        self._require(Action.CLEAR_ALL, "clear all screenshots")
        targets = list(self._screenshots)
        durable = [s for s in targets if s.durably_stored]

        results = await asyncio.gather(
            *(
                asyncio.wait_for(self.image_store.delete(s.image_ref), timeout=self.remote_timeout)
                for s in durable
            ),
            return_exceptions=True,
        )
        remote_deleted = 0
        for screenshot, outcome in zip(durable, results):
            if outcome is True:
                remote_deleted += 1
            else:
                logger.warning(
                    "remote_delete_failed",
                    screenshot_id=screenshot.id,
                    error=str(outcome) if isinstance(outcome, BaseException) else "not deleted",
                )

        self._screenshots = []
        await self.cache.remove(self._metadata_key)

        result = ClearResult(
            removed=len(targets),
            remote_deleted=remote_deleted,
            remote_failed=len(durable) - remote_deleted,
            inline_only=len(targets) - len(durable),
        )
        logger.info("screenshots_cleared", job_id=self.job_id, **result.__dict__)
        self._publish(StoreEvent(StoreEventKind.REORDER))
        return result

    # Comments

    async def add_comment(self, screenshot_id: int, text: str) -> Comment:
        """
        Append a comment by the acting user.

        Raises:
            AnnotationValidationError: If the text is empty after trimming
            ScreenshotNotFoundError: If the id is unknown
        """
        screenshot = self.get(screenshot_id)
        text = text.strip()
        if not text:
            raise AnnotationValidationError("Please enter a comment first")

        comment = Comment(
            id=self._next_id(self._clock()),
            text=text,
            author=self.user.name,
            author_role=self.user.role,
            created_at=self._clock(),
        )
        screenshot.comments.append(comment)
        await self._save_screenshots()
        logger.info("comment_added", screenshot_id=screenshot_id, comment_id=comment.id)
        self._publish(StoreEvent(StoreEventKind.PATCH, screenshot_id, ("comments",)))
        return comment

    async def delete_comment(self, screenshot_id: int, comment_id: int) -> bool:
        """
        Remove a comment. Deleting an absent comment is a no-op.

        Returns:
            True if a comment was removed

        Raises:
            PermissionDeniedError: If a client deletes someone else's comment
            ScreenshotNotFoundError: If the screenshot id is unknown
        """
        screenshot = self.get(screenshot_id)
        comment = screenshot.find_comment(comment_id)
        if comment is None:
            logger.debug("comment_already_absent", screenshot_id=screenshot_id, comment_id=comment_id)
            return False
        if not can_delete_comment(self.user.role, self.user.name, comment.author):
            logger.warning("permission_denied", action="delete_comment", user=self.user.name)
            raise PermissionDeniedError("You can only delete your own comments")

        screenshot.comments = [c for c in screenshot.comments if c.id != comment_id]
        await self._save_screenshots()
        logger.info("comment_deleted", screenshot_id=screenshot_id, comment_id=comment_id)
        self._publish(StoreEvent(StoreEventKind.PATCH, screenshot_id, ("comments",)))
        return True

    # Tags

    async def toggle_tag(self, screenshot_id: int, tag_id: int) -> bool:
        """
        Apply a tag if absent, remove it if present.

        Returns:
            True if the tag was added, False if it was removed

        Raises:
            PermissionDeniedError: If a client toggles a tag that is not client-visible
            ScreenshotNotFoundError: If the screenshot id is unknown
            TagNotFoundError: If the tag id is unknown
        """
        screenshot = self.get(screenshot_id)
        tag = self.get_tag(tag_id)
        if not can_apply_tag(self.user.role, tag.client_visible):
            logger.warning("permission_denied", action="toggle_tag", tag=tag.name, user=self.user.name)
            raise PermissionDeniedError(f"Tag '{tag.name}' is not available for your role")

        if screenshot.has_tag(tag_id):
            screenshot.tag_ids = [t for t in screenshot.tag_ids if t != tag_id]
            added = False
        else:
            screenshot.tag_ids = [*screenshot.tag_ids, tag_id]
            added = True

        await self._save_screenshots()
        logger.info("tag_toggled", screenshot_id=screenshot_id, tag_id=tag_id, added=added)
        self._publish(StoreEvent(StoreEventKind.PATCH, screenshot_id, ("tag_ids",)))
        return added

    async def create_tag(self, name: str, color: str, client_visible: bool = False) -> Tag:
        """
        Add a tag to the catalog. Admin only.

        Raises:
            PermissionDeniedError: If the acting role cannot manage tags
            AnnotationValidationError: If the name is empty, too long or taken,
                or the color is not a hex color
        """
        self._require(Action.MANAGE_TAGS, "manage tags")
        name = name.strip()
        if not name:
            raise AnnotationValidationError("Please enter a tag name")
        if len(name) > TAG_NAME_MAX_LENGTH:
            raise AnnotationValidationError(
                f"Tag names are limited to {TAG_NAME_MAX_LENGTH} characters"
            )
        if any(t.name.casefold() == name.casefold() for t in self._tags):
            raise AnnotationValidationError("A tag with this name already exists")
        try:
            color = normalize_color(color)
        except ValueError as e:
            raise AnnotationValidationError(str(e)) from e

        tag = Tag(
            id=max((t.id for t in self._tags), default=0) + 1,
            name=name,
            color=color,
            client_visible=client_visible,
        )
        self._tags.append(tag)
        await self._save_tags()
        logger.info("tag_created", tag_id=tag.id, name=name, client_visible=client_visible)
        return tag

    async def set_tag_visibility(self, tag_id: int, client_visible: bool) -> Tag:
        """
        Change whether clients may see and apply a tag. Admin only.

        Raises:
            PermissionDeniedError: If the acting role cannot manage tags
            TagNotFoundError: If the tag id is unknown
        """
        self._require(Action.MANAGE_TAGS, "manage tags")
        tag = self.get_tag(tag_id)
        tag.client_visible = client_visible
        await self._save_tags()
        logger.info("tag_visibility_changed", tag_id=tag_id, client_visible=client_visible)
        for screenshot in self._screenshots:
            if screenshot.has_tag(tag_id):
                self._publish(StoreEvent(StoreEventKind.PATCH, screenshot.id, ("tag_ids",)))
        return tag

    async def delete_tag(self, tag_id: int) -> int:
        """
        Remove a tag from the catalog and from every screenshot holding it. Admin only.

        Screenshots of other jobs cached locally are scrubbed as well.

        Returns:
            Number of screenshots in this job that lost the tag

        Raises:
            PermissionDeniedError: If the acting role cannot manage tags
            TagNotFoundError: If the tag id is unknown
        """
        self._require(Action.MANAGE_TAGS, "manage tags")
        tag = self.get_tag(tag_id)
        self._tags = [t for t in self._tags if t.id != tag_id]
        await self._save_tags()

        affected = [s for s in self._screenshots if s.has_tag(tag_id)]
        for screenshot in affected:
            screenshot.tag_ids = [t for t in screenshot.tag_ids if t != tag_id]
        if affected:
            await self._save_screenshots()
        await self._scrub_tag_from_other_jobs(tag_id)

        logger.info("tag_deleted", tag_id=tag_id, name=tag.name, screenshots_affected=len(affected))
        for screenshot in affected:
            self._publish(StoreEvent(StoreEventKind.PATCH, screenshot.id, ("tag_ids",)))
        return len(affected)

    async def _scrub_tag_from_other_jobs(self, tag_id: int) -> None:
        for key in await self.cache.keys(METADATA_KEY_PREFIX):
            if key == self._metadata_key:
                continue
            records = await self.cache.get_json(key, default=[])
            if not isinstance(records, list):
                continue
            changed = False
            for record in records:
                tag_ids = record.get("tag_ids") if isinstance(record, dict) else None
                if isinstance(tag_ids, list) and tag_id in tag_ids:
                    record["tag_ids"] = [t for t in tag_ids if t != tag_id]
                    changed = True
            if changed:
                await self.cache.set_json(key, records)
                logger.debug("tag_scrubbed_from_job", key=key, tag_id=tag_id)

    # Helpers

    def _require(self, action: Action, description: str) -> None:
        if not is_allowed(self.user.role, action):
            logger.warning("permission_denied", action=action.value, user=self.user.name)
            raise PermissionDeniedError(
                f"You do not have permission to {description} ({self.user.role.value} role)"
            )

    async def _save_screenshots(self) -> None:
        await self.cache.set_json(
            self._metadata_key,
            [s.model_dump(mode="json") for s in self._screenshots],
        )

    async def _save_tags(self) -> None:
        await self.cache.set_json(TAGS_CACHE_KEY, [t.model_dump(mode="json") for t in self._tags])
