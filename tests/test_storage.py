"""Tests for the CSV-backed store."""

from datetime import datetime

import pandas as pd
import pytest

from bedalloc.allocation import AllocationEngine
from bedalloc.errors import StaleSnapshotError, StorageError, ValidationError
from bedalloc.models import Snapshot
from bedalloc.storage import ALLOCATIONS_CSV, BEDS_CSV, COLUMNS, CsvStore


@pytest.fixture
def stocked_store(store):
    store.add_patient(1, "A", 5)
    store.add_patient(2, "B", 9, "oxygen")
    store.add_patient(3, "C", 9)
    store.add_bed(101, "icu", "icu")
    store.add_bed(102, "general", "standard")
    store.add_resource("oxygen", 1)
    return store


class TestInitialize:
    def test_creates_headers(self, store):
        for filename, columns in COLUMNS.items():
            df = pd.read_csv(store.data_dir / filename)
            assert list(df.columns) == columns
            assert df.empty

    def test_keeps_existing_files(self, stocked_store):
        stocked_store.initialize()
        assert len(stocked_store.load_patients()) == 3

    def test_missing_file_reported(self, tmp_path):
        with pytest.raises(StorageError, match="init"):
            CsvStore(tmp_path / "nowhere").load_snapshot()

    def test_missing_column_reported(self, store):
        pd.DataFrame({"id": [1]}).to_csv(store.data_dir / BEDS_CSV, index=False)
        with pytest.raises(StorageError, match="missing columns"):
            store.load_beds()


class TestSnapshotRoundTrip:
    def test_load_snapshot(self, stocked_store):
        snap = stocked_store.load_snapshot()
        assert [p.patient_id for p in snap.patients] == [1, 2, 3]
        assert [p.required_resource for p in snap.patients] == ["", "oxygen", ""]
        assert [b.bed_id for b in snap.beds] == [101, 102]
        assert snap.inventory == {"oxygen": 1}

    def test_commit_then_reload(self, stocked_store, clock):
        result = AllocationEngine().run(stocked_store.load_snapshot(), clock=clock)
        records = stocked_store.commit(result)

        assert [(r.patient_id, r.bed_id, r.resource_used) for r in records] == [
            (2, 101, "oxygen"),
            (3, 102, None),
        ]
        snap = stocked_store.load_snapshot()
        assert [p.patient_id for p in snap.patients] == [1]
        assert snap.beds == ()
        assert snap.inventory == {"oxygen": 0}
        assert all(b.is_occupied for b in stocked_store.load_beds())

        history = stocked_store.load_allocations()
        assert history[0].alloc_time == datetime(2026, 1, 1, 8, 0, 0)

    def test_commit_without_grants_writes_nothing(self, store, clock):
        store.add_patient(1, "A", 5, "ventilator")
        store.add_bed(101, "icu", "icu")
        before = (store.data_dir / BEDS_CSV).read_text()

        result = AllocationEngine().run(store.load_snapshot(), clock=clock)

        assert store.commit(result) == []
        assert (store.data_dir / BEDS_CSV).read_text() == before

    def test_stale_bed_rejected(self, stocked_store, clock):
        snap = stocked_store.load_snapshot()
        first = AllocationEngine().run(snap, clock=clock)
        second = AllocationEngine().run(snap, clock=clock)
        stocked_store.commit(first)
        history_before = (stocked_store.data_dir / ALLOCATIONS_CSV).read_text()

        with pytest.raises(StaleSnapshotError):
            stocked_store.commit(second)
        assert (stocked_store.data_dir / ALLOCATIONS_CSV).read_text() == history_before

    def test_failed_history_write_leaves_store_untouched(self, stocked_store, clock, monkeypatch):
        """A write failure part-way through a commit changes no table."""
        before = {f: (stocked_store.data_dir / f).read_text() for f in COLUMNS}
        result = AllocationEngine().run(stocked_store.load_snapshot(), clock=clock)
        stage = CsvStore._stage

        def failing_stage(self, filename, df):
            if filename == ALLOCATIONS_CSV:
                raise OSError("disk full")
            return stage(self, filename, df)

        monkeypatch.setattr(CsvStore, "_stage", failing_stage)
        with pytest.raises(OSError):
            stocked_store.commit(result)
        monkeypatch.undo()

        assert {f: (stocked_store.data_dir / f).read_text() for f in COLUMNS} == before
        assert not list(stocked_store.data_dir.glob("*.tmp"))
        snap = stocked_store.load_snapshot()
        assert [p.patient_id for p in snap.patients] == [1, 2, 3]
        assert snap.inventory == {"oxygen": 1}

        # The retried batch hands out each bed and oxygen unit once.
        stocked_store.commit(AllocationEngine().run(snap, clock=clock))
        history = stocked_store.load_allocations()
        assert [(a.patient_id, a.bed_id) for a in history] == [(2, 101), (3, 102)]
        assert stocked_store.load_inventory() == {"oxygen": 0}

    def test_already_allocated_patient_rejected(self, stocked_store, clock):
        snap = stocked_store.load_snapshot()
        stocked_store.commit(AllocationEngine().run(snap, clock=clock))
        stocked_store.add_bed(103, "icu", "icu")
        stocked_store.add_bed(104, "icu", "icu")
        history_before = (stocked_store.data_dir / ALLOCATIONS_CSV).read_text()
        replay = Snapshot(
            patients=snap.patients,
            beds=stocked_store.load_snapshot().beds,
            inventory={"oxygen": 1},
        )

        with pytest.raises(StaleSnapshotError, match="already allocated"):
            stocked_store.commit(AllocationEngine().run(replay, clock=clock))
        assert (stocked_store.data_dir / ALLOCATIONS_CSV).read_text() == history_before

    def test_stale_resource_rejected(self, stocked_store, clock):
        result = AllocationEngine().run(stocked_store.load_snapshot(), clock=clock)
        inv = pd.DataFrame({"name": ["oxygen"], "quantity": [0]})
        inv.to_csv(stocked_store.data_dir / "resources.csv", index=False)

        with pytest.raises(StaleSnapshotError, match="oxygen"):
            stocked_store.commit(result)

    def test_commit_decrements_current_quantity(self, stocked_store, clock):
        result = AllocationEngine().run(stocked_store.load_snapshot(), clock=clock)
        inv = pd.DataFrame({"name": ["oxygen"], "quantity": [4]})
        inv.to_csv(stocked_store.data_dir / "resources.csv", index=False)

        stocked_store.commit(result)

        assert stocked_store.load_inventory() == {"oxygen": 3}


class TestEditing:
    def test_release_bed(self, stocked_store, clock):
        stocked_store.commit(AllocationEngine().run(stocked_store.load_snapshot(), clock=clock))
        bed = stocked_store.release_bed(101)

        assert not bed.is_occupied
        assert [b.bed_id for b in stocked_store.load_snapshot().beds] == [101]

    def test_release_unknown_bed(self, stocked_store):
        with pytest.raises(StorageError, match="Unknown bed"):
            stocked_store.release_bed(999)

    def test_duplicate_patient(self, stocked_store):
        with pytest.raises(StorageError):
            stocked_store.add_patient(1, "Again", 3)

    def test_duplicate_bed(self, stocked_store):
        with pytest.raises(StorageError):
            stocked_store.add_bed(101, "icu", "icu")

    def test_duplicate_resource(self, stocked_store):
        with pytest.raises(StorageError):
            stocked_store.add_resource("oxygen", 5)

    def test_invalid_resource_quantity(self, stocked_store):
        with pytest.raises(ValidationError):
            stocked_store.add_resource("ventilator", -2)

    def test_corrupt_patient_row(self, store):
        (store.data_dir / "patients.csv").write_text("id,name,urgency,required_resource\n1,A,urgent,\n")
        with pytest.raises(ValidationError):
            store.load_snapshot()
