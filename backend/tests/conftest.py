"""Pytest configuration and fixtures."""

import os
import tempfile
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from callflow.db import flow_store, graph_store
from callflow.db.database import close_database, init_database
from callflow.main import app
from callflow.models import Flow, FlowCreate, SegmentCreate, TransitionCreate


@pytest.fixture(autouse=True)
async def setup_test_db():
    """Set up a test database for each test."""
    # Create a temporary database file
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    # Initialize the database
    await init_database(db_path)

    yield

    # Clean up
    await close_database()
    os.unlink(db_path)


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture
async def flow() -> Flow:
    """A registered flow owned by a customer/project, starting at segment A."""
    return await flow_store.create_flow(
        FlowCreate(
            flow_id="F1",
            name="Main line",
            customer_id="acme",
            project_id="support",
            init_segment="A",
        )
    )


@pytest.fixture
async def published_graph(flow: Flow) -> dict[str, str]:
    """Published graph A -(ok)-> B, with B terminal. Returns segment ids by name."""
    a = await graph_store.create_segment(
        flow.flow_id,
        None,
        SegmentCreate(name="A", type_id="menu", order=1, config=[{"key": "prompt", "value": "hello"}]),
    )
    b = await graph_store.create_segment(
        flow.flow_id, None, SegmentCreate(name="B", type_id="disconnect", order=2)
    )
    await graph_store.create_transition(
        flow.flow_id,
        None,
        TransitionCreate(source_segment_id=a.segment_id, result_name="ok", target_segment_id=b.segment_id),
    )
    return {"A": a.segment_id, "B": b.segment_id}
