"""Pydantic models for flows, flow graphs and structural validation."""

from pydantic import BaseModel, Field

from callflow.models.segment import Segment
from callflow.models.transition import Transition


class FlowCreate(BaseModel):
    """Request model for registering a flow."""

    flow_id: str = Field(..., min_length=1, max_length=150)
    name: str | None = None
    customer_id: str | None = Field(None, max_length=64)
    project_id: str | None = Field(None, max_length=64)
    init_segment: str = "init"


class Flow(BaseModel):
    """A call-routing flow. Only its graph is versioned."""

    flow_id: str
    name: str | None = None
    customer_id: str | None = None
    project_id: str | None = None
    init_segment: str = "init"
    is_active: bool = True
    date_created: str


class FlowOwnership(BaseModel):
    """Owning customer/project of a flow, stamped onto new ChangeSets."""

    flow_id: str
    customer_id: str
    project_id: str


class FlowGraph(BaseModel):
    """All segments and transitions of one flow in one scope."""

    flow_id: str
    scope: str | None = None
    segments: list[Segment] = []
    transitions: list[Transition] = []


class ValidationIssue(BaseModel):
    """A single structural validation error or warning."""

    type: str
    message: str
    segment: str | None = None


class FlowValidationResult(BaseModel):
    """Result of validating a flow graph."""

    is_valid: bool
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []


class FlowsResponse(BaseModel):
    """Response for flow list queries."""

    flows: list[Flow]
    total: int
