"""
Typed containers shared by the normalizer, the matcher and the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .config import TIMESTAMP_FORMAT


class Outcome(str, Enum):
    GRANTED = "GRANTED"
    SKIPPED = "SKIPPED"


class SkipReason(str, Enum):
    RESOURCE_UNAVAILABLE = "RESOURCE_UNAVAILABLE"
    NO_BED_AVAILABLE = "NO_BED_AVAILABLE"


@dataclass(frozen=True)
class Patient:
    patient_id: int
    name: str
    urgency: int  # higher = more urgent
    required_resource: str = ""  # "" when no resource is needed

    @property
    def needs_resource(self) -> bool:
        return bool(self.required_resource)


@dataclass(frozen=True)
class Bed:
    bed_id: int
    ward: str
    bed_type: str
    is_occupied: bool = False


@dataclass(frozen=True)
class AllocationDecision:
    patient_id: int
    outcome: Outcome
    timestamp: datetime
    bed_id: Optional[int] = None
    resource_used: Optional[str] = None
    skip_reason: Optional[SkipReason] = None

    @property
    def granted(self) -> bool:
        return self.outcome is Outcome.GRANTED

    @property
    def label(self) -> str:
        """GRANTED, or the skip reason."""
        return self.skip_reason.value if self.skip_reason else self.outcome.value

    def to_record(self) -> Dict[str, object]:
        """DecisionLog row with the interface field names."""
        return {
            "patientId": self.patient_id,
            "outcome": self.outcome.value,
            "bedId": self.bed_id,
            "resourceUsed": self.resource_used,
            "skipReason": self.skip_reason.value if self.skip_reason else None,
            "timestamp": self.timestamp.strftime(TIMESTAMP_FORMAT),
        }


@dataclass(frozen=True)
class AllocationRecord:
    patient_id: int
    bed_id: int
    resource_used: Optional[str]
    alloc_time: datetime


@dataclass
class AllocationSummary:
    granted: int = 0
    skipped: int = 0
    unprocessed: int = 0
    patients_exhausted: bool = False
    beds_exhausted: bool = False

    def messages(self) -> List[str]:
        lines = []
        if self.patients_exhausted:
            lines.append("All patients processed or no more patients in waiting list.")
        if self.beds_exhausted:
            lines.append("No more available beds.")
        return lines


@dataclass
class AllocationResult:
    decisions: List[AllocationDecision]
    inventory: Dict[str, int]
    occupied_bed_ids: List[int]
    unprocessed_patient_ids: List[int] = field(default_factory=list)
    summary: AllocationSummary = field(default_factory=AllocationSummary)

    def granted(self) -> List[AllocationDecision]:
        return [d for d in self.decisions if d.granted]

    def skipped(self) -> List[AllocationDecision]:
        return [d for d in self.decisions if not d.granted]


@dataclass(frozen=True)
class Snapshot:
    patients: Tuple[Patient, ...]
    beds: Tuple[Bed, ...]
    inventory: Dict[str, int]

    def advance(self, result: AllocationResult) -> "Snapshot":
        """Baseline for the next batch once ``result`` has been applied."""
        occupied = set(result.occupied_bed_ids)
        granted_ids = {d.patient_id for d in result.decisions if d.granted}
        return Snapshot(
            patients=tuple(p for p in self.patients if p.patient_id not in granted_ids),
            beds=tuple(b for b in self.beds if b.bed_id not in occupied),
            inventory=dict(result.inventory),
        )
