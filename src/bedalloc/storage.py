"""
CSV-backed store for patients, beds, resources and allocation history.

The matcher never touches the store; callers load a snapshot, run a batch and
hand the result back to ``CsvStore.commit``.
"""

from __future__ import annotations

import logging
import os
from collections import Counter
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .config import TIMESTAMP_FORMAT
from .errors import StaleSnapshotError, StorageError
from .intake import normalize_beds, normalize_inventory, normalize_patients
from .models import AllocationRecord, AllocationResult, Bed, Patient, Snapshot

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).resolve().parents[2] / "data"
PATIENTS_CSV = "patients.csv"
BEDS_CSV = "beds.csv"
RESOURCES_CSV = "resources.csv"
ALLOCATIONS_CSV = "allocations.csv"

COLUMNS: Dict[str, List[str]] = {
    PATIENTS_CSV: ["id", "name", "urgency", "required_resource"],
    BEDS_CSV: ["id", "ward", "bed_type", "is_occupied"],
    RESOURCES_CSV: ["name", "quantity"],
    ALLOCATIONS_CSV: ["patient_id", "bed_id", "resource_used", "alloc_time"],
}


# ---------------- Frame conversion ----------------


def patients_to_df(patients: Sequence[Patient]) -> pd.DataFrame:
    records = [
        {
            "id": p.patient_id,
            "name": p.name,
            "urgency": p.urgency,
            "required_resource": p.required_resource,
        }
        for p in patients
    ]
    return pd.DataFrame.from_records(records, columns=COLUMNS[PATIENTS_CSV])


def beds_to_df(beds: Sequence[Bed]) -> pd.DataFrame:
    records = [
        {"id": b.bed_id, "ward": b.ward, "bed_type": b.bed_type, "is_occupied": int(b.is_occupied)}
        for b in beds
    ]
    return pd.DataFrame.from_records(records, columns=COLUMNS[BEDS_CSV])


def inventory_to_df(inventory: Dict[str, int]) -> pd.DataFrame:
    records = [{"name": name, "quantity": qty} for name, qty in inventory.items()]
    return pd.DataFrame.from_records(records, columns=COLUMNS[RESOURCES_CSV])


def allocations_to_df(allocations: Sequence[AllocationRecord]) -> pd.DataFrame:
    records = [
        {
            "patient_id": a.patient_id,
            "bed_id": a.bed_id,
            "resource_used": a.resource_used or "",
            "alloc_time": a.alloc_time.strftime(TIMESTAMP_FORMAT),
        }
        for a in allocations
    ]
    return pd.DataFrame.from_records(records, columns=COLUMNS[ALLOCATIONS_CSV])


def _allocation_from_row(row: pd.Series) -> AllocationRecord:
    try:
        return AllocationRecord(
            patient_id=int(row["patient_id"]),
            bed_id=int(row["bed_id"]),
            resource_used=str(row["resource_used"]) or None,
            alloc_time=datetime.strptime(str(row["alloc_time"]), TIMESTAMP_FORMAT),
        )
    except ValueError as exc:
        raise StorageError(f"Corrupt allocation history row {row.to_dict()}: {exc}") from exc


class CsvStore:
    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir) if data_dir else DEFAULT_DATA_DIR

    # ---------------- File plumbing ----------------

    def initialize(self) -> None:
        """Create the data directory and any missing file with its header row."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        for filename, columns in COLUMNS.items():
            if not (self.data_dir / filename).exists():
                self._write(filename, pd.DataFrame(columns=columns))
                logger.info("Created %s", self.data_dir / filename)

    def _read(self, filename: str) -> pd.DataFrame:
        path = self.data_dir / filename
        if not path.exists():
            raise StorageError(f"Missing {filename} under {self.data_dir}; run `bedalloc init` first")
        try:
            df = pd.read_csv(path, dtype=str, keep_default_na=False)
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
            raise StorageError(f"Unreadable {path}: {exc}") from exc
        missing = [c for c in COLUMNS[filename] if c not in df.columns]
        if missing:
            raise StorageError(f"{path} is missing columns {missing}")
        return df

    def _stage(self, filename: str, df: pd.DataFrame) -> Path:
        tmp = self.data_dir / (filename + ".tmp")
        df.to_csv(tmp, index=False)
        return tmp

    def _write(self, filename: str, df: pd.DataFrame) -> None:
        self._write_all({filename: df})

    def _write_all(self, tables: Dict[str, pd.DataFrame]) -> None:
        # Every table is staged before any is swapped in, so a failed write leaves the store as it was.
        staged: List[Path] = []
        try:
            for filename, df in tables.items():
                staged.append(self._stage(filename, df))
        except Exception:
            for tmp in staged:
                tmp.unlink(missing_ok=True)
            raise
        for filename, tmp in zip(tables, staged):
            os.replace(tmp, self.data_dir / filename)

    # ---------------- Loading ----------------

    def load_patients(self) -> List[Patient]:
        return list(normalize_patients(self._read(PATIENTS_CSV)))

    def load_beds(self) -> List[Bed]:
        return list(normalize_beds(self._read(BEDS_CSV)))

    def load_inventory(self) -> Dict[str, int]:
        return normalize_inventory(self._read(RESOURCES_CSV))

    def load_allocations(self) -> List[AllocationRecord]:
        df = self._read(ALLOCATIONS_CSV)
        return [_allocation_from_row(r) for _, r in df.iterrows()]

    def load_snapshot(self) -> Snapshot:
        """Waiting patients, free beds in file order, and the inventory."""
        allocated = {a.patient_id for a in self.load_allocations()}
        patients = [p for p in self.load_patients() if p.patient_id not in allocated]
        beds = [b for b in self.load_beds() if not b.is_occupied]
        return Snapshot(patients=tuple(patients), beds=tuple(beds), inventory=self.load_inventory())

    # ---------------- Writing ----------------

    def commit(self, result: AllocationResult) -> List[AllocationRecord]:
        """Persist the GRANTED decisions of one batch, or nothing if the store moved on."""
        granted = result.granted()
        if not granted:
            return []

        beds = self.load_beds()
        inventory = self.load_inventory()
        history = self.load_allocations()

        by_id = {b.bed_id: b for b in beds}
        allocated = {a.patient_id for a in history}
        for decision in granted:
            if decision.patient_id in allocated:
                raise StaleSnapshotError(f"Patient {decision.patient_id} was already allocated a bed")
            bed = by_id.get(decision.bed_id)
            if bed is None:
                raise StaleSnapshotError(f"Bed {decision.bed_id} no longer exists")
            if bed.is_occupied:
                raise StaleSnapshotError(f"Bed {decision.bed_id} was occupied by another batch")

        used = Counter(d.resource_used for d in granted if d.resource_used)
        for name, count in used.items():
            if inventory.get(name, 0) < count:
                raise StaleSnapshotError(
                    f"Resource '{name}' has {inventory.get(name, 0)} left, batch needs {count}"
                )
            inventory[name] -= count

        occupied = {d.bed_id for d in granted}
        beds = [replace(b, is_occupied=True) if b.bed_id in occupied else b for b in beds]
        records = [
            AllocationRecord(
                patient_id=d.patient_id,
                bed_id=d.bed_id,
                resource_used=d.resource_used,
                alloc_time=d.timestamp,
            )
            for d in granted
        ]

        self._write_all(
            {
                BEDS_CSV: beds_to_df(beds),
                RESOURCES_CSV: inventory_to_df(inventory),
                ALLOCATIONS_CSV: allocations_to_df(history + records),
            }
        )
        logger.info("Committed %d allocations", len(records))
        return records

    def save_snapshot(self, snapshot: Snapshot) -> None:
        """Overwrite the dataset with ``snapshot`` and clear allocation history."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._write_all(
            {
                PATIENTS_CSV: patients_to_df(snapshot.patients),
                BEDS_CSV: beds_to_df(snapshot.beds),
                RESOURCES_CSV: inventory_to_df(snapshot.inventory),
                ALLOCATIONS_CSV: allocations_to_df([]),
            }
        )

    def release_bed(self, bed_id: int) -> Bed:
        beds = self.load_beds()
        if not any(b.bed_id == bed_id for b in beds):
            raise StorageError(f"Unknown bed id {bed_id}")
        released = None
        updated = []
        for bed in beds:
            if bed.bed_id == bed_id:
                if not bed.is_occupied:
                    logger.warning("Bed %d was already free", bed_id)
                bed = released = replace(bed, is_occupied=False)
            updated.append(bed)
        self._write(BEDS_CSV, beds_to_df(updated))
        return released

    def add_patient(self, patient_id: int, name: str, urgency: int, required_resource: str = "") -> Patient:
        (patient,) = normalize_patients(
            [{"id": patient_id, "name": name, "urgency": urgency, "required_resource": required_resource}]
        )
        patients = self.load_patients()
        if any(p.patient_id == patient.patient_id for p in patients):
            raise StorageError(f"Patient id {patient.patient_id} already exists")
        self._write(PATIENTS_CSV, patients_to_df(patients + [patient]))
        return patient

    def add_bed(self, bed_id: int, ward: str, bed_type: str) -> Bed:
        (bed,) = normalize_beds([{"id": bed_id, "ward": ward, "bed_type": bed_type}])
        beds = self.load_beds()
        if any(b.bed_id == bed.bed_id for b in beds):
            raise StorageError(f"Bed id {bed.bed_id} already exists")
        self._write(BEDS_CSV, beds_to_df(beds + [bed]))
        return bed

    def add_resource(self, name: str, quantity: int) -> Dict[str, int]:
        added = normalize_inventory({name: quantity})
        inventory = self.load_inventory()
        clashes = set(added) & set(inventory)
        if clashes:
            raise StorageError(f"Resource '{clashes.pop()}' already exists")
        inventory.update(added)
        self._write(RESOURCES_CSV, inventory_to_df(inventory))
        return added
