"""Flow -> owning customer/project lookup."""

from typing import Protocol

from callflow.db import flow_store
from callflow.errors import MissingOwnership, NotFoundError
from callflow.models import FlowOwnership


class OwnershipResolver(Protocol):
    """Resolves the customer/project that owns a flow."""

    async def resolve(self, flow_id: str) -> FlowOwnership: ...


class StoreOwnershipResolver:
    """OwnershipResolver backed by the flow registry."""

    async def resolve(self, flow_id: str) -> FlowOwnership:
        flow = await flow_store.get_flow(flow_id)
        if flow is None:
            raise NotFoundError(f"Flow '{flow_id}' not found", flow_id=flow_id)

        if not flow.customer_id or not flow.project_id:
            raise MissingOwnership(
                f"Flow '{flow_id}' has no owning customer/project",
                flow_id=flow_id,
            )

        return FlowOwnership(
            flow_id=flow_id,
            customer_id=flow.customer_id,
            project_id=flow.project_id,
        )
