"""Versioning services for call-flow segment graphs."""

from callflow.services.changeset_service import ChangeSetService, get_changeset_service
from callflow.services.cleanup import DraftCleanup
from callflow.services.cloner import GraphCloner
from callflow.services.draft_editor import DraftEditor
from callflow.services.draft_resolver import DraftResolver
from callflow.services.flow_validator import FlowValidator, validate_graph
from callflow.services.ownership import OwnershipResolver, StoreOwnershipResolver
from callflow.services.publisher import PublishOrchestrator
from callflow.services.state_machine import ALLOWED_TRANSITIONS, ensure_transition

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ChangeSetService",
    "DraftCleanup",
    "DraftEditor",
    "DraftResolver",
    "FlowValidator",
    "GraphCloner",
    "OwnershipResolver",
    "PublishOrchestrator",
    "StoreOwnershipResolver",
    "ensure_transition",
    "get_changeset_service",
    "validate_graph",
]
