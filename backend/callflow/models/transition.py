"""Pydantic models for transitions (graph edges)."""

from typing import Any

from pydantic import BaseModel, Field


class TransitionCreate(BaseModel):
    """Request model for creating a transition out of a segment."""

    source_segment_id: str
    result_name: str = Field(..., min_length=1, max_length=100)
    target_segment_id: str | None = None  # None = terminal
    order: int = 0
    context_key: str | None = None
    params: dict[str, Any] | None = None


class TransitionUpdate(BaseModel):
    """Request model for updating a transition. Only fields sent are applied."""

    result_name: str | None = Field(None, min_length=1, max_length=100)
    target_segment_id: str | None = None  # Explicit null = terminal
    order: int | None = None
    context_key: str | None = None
    params: dict[str, Any] | None = None


class Transition(BaseModel):
    """An outcome-driven edge from one segment to another (or to termination)."""

    transition_id: str
    flow_id: str
    source_segment_id: str
    result_name: str
    target_segment_id: str | None = None
    scope: str | None = None
    order: int = 0
    context_key: str | None = None
    params: dict[str, Any] | None = None
    date_created: str

    @property
    def is_terminal(self) -> bool:
        return self.target_segment_id is None
