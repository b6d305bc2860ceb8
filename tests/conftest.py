"""Pytest fixtures for bedalloc tests."""

from datetime import datetime, timedelta

import pytest

from bedalloc.intake import normalize_snapshot
from bedalloc.storage import CsvStore


@pytest.fixture
def clock():
    """Deterministic clock: one second per call from 2026-01-01 08:00."""
    state = {"now": datetime(2026, 1, 1, 8, 0, 0)}

    def tick() -> datetime:
        current = state["now"]
        state["now"] = current + timedelta(seconds=1)
        return current

    return tick


@pytest.fixture
def ward_snapshot():
    """Three patients, two beds, one oxygen unit."""
    return normalize_snapshot(
        patients=[
            {"id": 1, "name": "A", "urgency": 5, "required_resource": ""},
            {"id": 2, "name": "B", "urgency": 9, "required_resource": "oxygen"},
            {"id": 3, "name": "C", "urgency": 9, "required_resource": None},
        ],
        beds=[
            {"id": 101, "ward": "icu", "bed_type": "icu"},
            {"id": 102, "ward": "general", "bed_type": "standard"},
        ],
        inventory={"oxygen": 1},
    )


@pytest.fixture
def store(tmp_path):
    s = CsvStore(tmp_path / "data")
    s.initialize()
    return s
