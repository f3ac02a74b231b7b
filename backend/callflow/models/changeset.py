"""Pydantic models for ChangeSets.

A ChangeSet is one versioned snapshot of a flow's segment graph: either a
draft being edited, or a historical (published/archived) record. The live
graph is not tied to any ChangeSet; it lives at scope = None.
"""

from enum import Enum

from pydantic import BaseModel, Field


class ChangeSetStatus(str, Enum):
    """Status of a ChangeSet."""

    DRAFT = "draft"  # Editable working copy
    VALIDATED = "validated"  # Passed structural validation, still editable
    PUBLISHED = "published"  # Promoted to live; record is frozen
    DISCARDED = "discarded"  # Abandoned; its scope has been deleted
    ARCHIVED = "archived"  # Holds a formerly-live graph snapshot


class ChangeSetCreate(BaseModel):
    """Request model for creating a draft ChangeSet."""

    flow_id: str = Field(..., min_length=1, max_length=150)
    version_name: str | None = Field(None, max_length=128)
    description: str | None = Field(None, max_length=500)
    created_by: str | None = Field(None, max_length=100)


class PublishRequest(BaseModel):
    """Request model for publishing a ChangeSet."""

    published_by: str = Field(..., min_length=1, max_length=100)


class ChangeSet(BaseModel):
    """A versioned snapshot of a flow's graph."""

    change_set_id: str
    flow_id: str
    customer_id: str | None = None
    project_id: str | None = None
    status: ChangeSetStatus
    version_name: str | None = None
    description: str | None = None
    is_active: bool = True
    created_by: str | None = None
    date_created: str
    published_by: str | None = None
    date_published: str | None = None

    @property
    def scope(self) -> str:
        """The graph scope addressed by this ChangeSet."""
        return self.change_set_id
