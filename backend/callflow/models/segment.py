"""Pydantic models for segments (graph nodes)."""

from typing import Any

from pydantic import BaseModel, Field


class ConfigItem(BaseModel):
    """One entry of a segment's ordered configuration."""

    key: str
    value: Any = None


class SegmentCreate(BaseModel):
    """Request model for creating a segment."""

    name: str = Field(..., min_length=1, max_length=100)
    type_id: str
    display_name: str | None = None
    order: int = 0
    config: list[ConfigItem] = Field(default_factory=list)
    hooks: dict[str, Any] | None = None


class SegmentUpdate(BaseModel):
    """Request model for updating a segment. Only fields sent are applied."""

    name: str | None = Field(None, min_length=1, max_length=100)
    type_id: str | None = None
    display_name: str | None = None
    order: int | None = None
    config: list[ConfigItem] | None = None
    hooks: dict[str, Any] | None = None


class Segment(BaseModel):
    """A segment in a flow graph, tagged with the scope it belongs to."""

    segment_id: str
    flow_id: str
    name: str
    type_id: str
    display_name: str | None = None
    scope: str | None = None
    order: int = 0
    config: list[ConfigItem] = Field(default_factory=list)
    hooks: dict[str, Any] | None = None
    date_created: str
    date_updated: str

    @property
    def is_published(self) -> bool:
        return self.scope is None
