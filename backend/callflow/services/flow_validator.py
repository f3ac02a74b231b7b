"""Structural validation of a flow's segment graph."""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING

from callflow.db import flow_store
from callflow.errors import NotFoundError
from callflow.models import FlowGraph, FlowValidationResult, ValidationIssue

if TYPE_CHECKING:
    from callflow.db.graph_store import GraphStore

logger = logging.getLogger(__name__)


def validate_graph(graph: FlowGraph, init_segment: str) -> FlowValidationResult:
    """Validate a loaded flow graph.

    Errors make the graph unpublishable:
    - empty_flow: the scope holds no segments
    - missing_init: the flow's initial segment is absent
    - missing_target: a transition targets a segment not in the scope
    - duplicate_transition: a segment repeats a result_name + context_key pair

    Warnings are reported but do not block publishing:
    - unreachable_segment: no path from the initial segment
    - circular_reference: the graph contains a cycle (cycles are allowed)
    """
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    if not graph.segments:
        errors.append(
            ValidationIssue(type="empty_flow", message="Flow has no segments")
        )
        return FlowValidationResult(is_valid=False, errors=errors, warnings=warnings)

    names_by_id = {s.segment_id: s.name for s in graph.segments}
    names = set(names_by_id.values())

    if init_segment not in names:
        errors.append(
            ValidationIssue(
                type="missing_init",
                message=f"Initial segment '{init_segment}' not found",
            )
        )

    # Adjacency by segment name; edges to missing targets are reported and skipped
    adjacency: dict[str, list[str]] = {name: [] for name in names}
    seen_keys: dict[str, set[tuple[str, str]]] = {}

    for transition in graph.transitions:
        source = names_by_id.get(transition.source_segment_id)
        if source is None:
            errors.append(
                ValidationIssue(
                    type="missing_target",
                    message=(
                        f"Transition '{transition.result_name}' leaves unknown "
                        f"segment '{transition.source_segment_id}'"
                    ),
                )
            )
            continue

        key = (transition.result_name, transition.context_key or "")
        keys = seen_keys.setdefault(source, set())
        if key in keys:
            errors.append(
                ValidationIssue(
                    type="duplicate_transition",
                    segment=source,
                    message=(
                        f"Segment '{source}' has duplicate transition "
                        f"'{transition.result_name}:{transition.context_key or ''}'"
                    ),
                )
            )
        keys.add(key)

        if transition.target_segment_id is None:
            continue

        target = names_by_id.get(transition.target_segment_id)
        if target is None:
            errors.append(
                ValidationIssue(
                    type="missing_target",
                    segment=source,
                    message=(
                        f"Transition '{transition.result_name}' targets missing "
                        f"segment '{transition.target_segment_id}'"
                    ),
                )
            )
            continue

        adjacency[source].append(target)

    # Reachability (BFS from the initial segment)
    if init_segment in names:
        reachable = {init_segment}
        queue = deque([init_segment])
        while queue:
            current = queue.popleft()
            for nxt in adjacency[current]:
                if nxt not in reachable:
                    reachable.add(nxt)
                    queue.append(nxt)

        for segment in graph.segments:
            if segment.name not in reachable:
                warnings.append(
                    ValidationIssue(
                        type="unreachable_segment",
                        segment=segment.name,
                        message=f"Segment '{segment.name}' is not reachable from '{init_segment}'",
                    )
                )

    for name in _find_cycle_entries(adjacency):
        warnings.append(
            ValidationIssue(
                type="circular_reference",
                segment=name,
                message=f"Segment '{name}' is part of a cycle",
            )
        )

    return FlowValidationResult(
        is_valid=not errors, errors=errors, warnings=warnings
    )


def _find_cycle_entries(adjacency: dict[str, list[str]]) -> list[str]:
    """Return one segment name per back edge found by an iterative DFS."""
    white, grey, black = 0, 1, 2
    color = {name: white for name in adjacency}
    entries: list[str] = []

    for root in sorted(adjacency):
        if color[root] != white:
            continue
        color[root] = grey
        stack = [(root, iter(adjacency[root]))]
        while stack:
            node, children = stack[-1]
            child = next(children, None)
            if child is None:
                color[node] = black
                stack.pop()
            elif color[child] == grey:
                if child not in entries:
                    entries.append(child)
            elif color[child] == white:
                color[child] = grey
                stack.append((child, iter(adjacency[child])))

    return entries


class FlowValidator:
    """Validates the graph stored in one scope of a flow."""

    def __init__(self, graph_store: GraphStore) -> None:
        self._store = graph_store

    async def validate(self, flow_id: str, scope: str | None) -> FlowValidationResult:
        flow = await flow_store.get_flow(flow_id)
        if flow is None:
            raise NotFoundError(f"Flow '{flow_id}' not found", flow_id=flow_id)

        graph = await self._store.get_graph(flow_id, scope)
        result = validate_graph(graph, flow.init_segment)
        logger.debug(
            f"Validated flow {flow_id} scope {scope or 'published'}: "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings"
        )
        return result
