"""Screenshot, comment and tag records."""

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from critique.core.permissions import Role

TAG_NAME_MAX_LENGTH = 20
HEX_COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def normalize_color(value: str) -> str:
    """Validate a hex color and expand it to lowercase #rrggbb."""
    value = value.strip()
    if not HEX_COLOR_PATTERN.match(value):
        raise ValueError(f"Invalid color '{value}'. Use #rgb or #rrggbb")
    if len(value) == 4:
        value = "#" + "".join(ch * 2 for ch in value[1:])
    return value.lower()


class Comment(BaseModel):
    """A remark on a screenshot. Immutable; removed by hard delete only."""

    id: int = Field(frozen=True)
    text: str = Field(frozen=True, min_length=1)
    author: str = Field(frozen=True)
    author_role: Role = Field(frozen=True)
    created_at: datetime = Field(frozen=True)


class Tag(BaseModel):
    """Catalog entry that screenshots reference by id."""

    id: int = Field(frozen=True)
    name: str = Field(min_length=1, max_length=TAG_NAME_MAX_LENGTH)
    color: str
    client_visible: bool = False

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        return normalize_color(v)


class Screenshot(BaseModel):
    """One captured region together with its review thread."""

    id: int = Field(frozen=True)
    job_id: str = Field(frozen=True)
    image_ref: str
    storage_key: str | None = None
    durably_stored: bool = True
    created_at: datetime = Field(frozen=True)
    created_by: str = Field(frozen=True)
    created_by_role: Role = Field(frozen=True)
    model_version: str = Field(frozen=True)
    capture_strategy: str | None = None
    comments: list[Comment] = Field(default_factory=list)
    tag_ids: list[int] = Field(default_factory=list)
    is_resolved: bool = False

    def has_tag(self, tag_id: int) -> bool:
        return tag_id in self.tag_ids

    def find_comment(self, comment_id: int) -> Comment | None:
        return next((c for c in self.comments if c.id == comment_id), None)


DEFAULT_TAGS: list[Tag] = [
    Tag(id=1, name="Client approval", color="#28a745", client_visible=True),
    Tag(id=2, name="Needs Review", color="#ffc107", client_visible=True),
    Tag(id=3, name="Admin Approved", color="#007bff", client_visible=False),
    Tag(id=4, name="Rejected", color="#dc3545", client_visible=False),
    Tag(id=5, name="Feedback Required", color="#17a2b8", client_visible=False),
]
