"""Screenshot annotation state: records, store, events and jobs."""

from critique.core.annotations.events import StoreEvent, StoreEventKind, StoreListener
from critique.core.annotations.jobs import CURRENT_JOB_KEY, JobInfo, JobManager, new_job_id
from critique.core.annotations.models import (
    DEFAULT_TAGS,
    TAG_NAME_MAX_LENGTH,
    Comment,
    Screenshot,
    Tag,
    normalize_color,
)
from critique.core.annotations.store import (
    METADATA_KEY_PREFIX,
    TAGS_CACHE_KEY,
    AnnotationStore,
    ClearResult,
    metadata_cache_key,
)

__all__ = [
    "AnnotationStore",
    "ClearResult",
    "Comment",
    "CURRENT_JOB_KEY",
    "DEFAULT_TAGS",
    "JobInfo",
    "JobManager",
    "METADATA_KEY_PREFIX",
    "Screenshot",
    "StoreEvent",
    "StoreEventKind",
    "StoreListener",
    "TAG_NAME_MAX_LENGTH",
    "TAGS_CACHE_KEY",
    "Tag",
    "metadata_cache_key",
    "new_job_id",
    "normalize_color",
]
