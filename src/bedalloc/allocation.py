"""
Allocation algorithm: serve waiting patients by urgency from a FIFO pool of free beds.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, List, Optional, Sequence

from .config import AllocatorConfig
from .models import (
    AllocationDecision,
    AllocationResult,
    AllocationSummary,
    Bed,
    Outcome,
    Patient,
    SkipReason,
    Snapshot,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass
class AllocationEngine:
    cfg: AllocatorConfig = field(default_factory=AllocatorConfig)

    def prioritize(self, patients: Sequence[Patient]) -> List[Patient]:
        # Equal urgency keeps input order.
        ranked = sorted(enumerate(patients), key=lambda item: (-item[1].urgency, item[0]))
        return [p for _, p in ranked]

    def run(self, snapshot: Snapshot, clock: Optional[Clock] = None) -> AllocationResult:
        """Match one batch. The snapshot is left untouched; all state changes are in the result."""
        now = clock or datetime.now
        pending: Deque[Patient] = deque(self.prioritize(snapshot.patients))
        beds: Deque[Bed] = deque(snapshot.beds)
        inventory = dict(snapshot.inventory)
        decisions: List[AllocationDecision] = []
        occupied: List[int] = []
        summary = AllocationSummary()

        while pending and beds:
            patient = pending.popleft()
            resource = patient.required_resource
            if resource:
                if inventory.get(resource, 0) <= 0:
                    logger.debug(
                        "Resource '%s' not available for patient %s (id %d); skipping",
                        resource,
                        patient.name,
                        patient.patient_id,
                    )
                    decisions.append(
                        AllocationDecision(
                            patient_id=patient.patient_id,
                            outcome=Outcome.SKIPPED,
                            timestamp=now(),
                            skip_reason=SkipReason.RESOURCE_UNAVAILABLE,
                        )
                    )
                    summary.skipped += 1
                    continue
                inventory[resource] -= 1

            bed = beds.popleft()
            occupied.append(bed.bed_id)
            decisions.append(
                AllocationDecision(
                    patient_id=patient.patient_id,
                    outcome=Outcome.GRANTED,
                    timestamp=now(),
                    bed_id=bed.bed_id,
                    resource_used=resource or None,
                )
            )
            summary.granted += 1
            logger.debug(
                "Allocated bed %d to patient %s (urgency=%d)", bed.bed_id, patient.name, patient.urgency
            )

        summary.patients_exhausted = not pending
        summary.beds_exhausted = not beds
        unprocessed = [p.patient_id for p in pending]

        if self.cfg.emit_no_bed_skips:
            for patient in pending:
                decisions.append(
                    AllocationDecision(
                        patient_id=patient.patient_id,
                        outcome=Outcome.SKIPPED,
                        timestamp=now(),
                        skip_reason=SkipReason.NO_BED_AVAILABLE,
                    )
                )
                summary.skipped += 1
            unprocessed = []
        else:
            summary.unprocessed = len(unprocessed)

        logger.info(
            "Batch done: %d granted, %d skipped, %d unprocessed, %d beds left",
            summary.granted,
            summary.skipped,
            summary.unprocessed,
            len(beds),
        )
        return AllocationResult(
            decisions=decisions,
            inventory=inventory,
            occupied_bed_ids=occupied,
            unprocessed_patient_ids=unprocessed,
            summary=summary,
        )
