"""
Daily report and decision-log tables.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence

import pandas as pd

from .models import AllocationDecision
from .storage import CsvStore

DECISION_COLUMNS = ["patientId", "outcome", "bedId", "resourceUsed", "skipReason", "timestamp"]


@dataclass
class DailyReport:
    occupied_beds: int
    free_beds: int
    unallocated_patients: int
    inventory: Dict[str, int]

    def metrics(self) -> Dict[str, int]:
        return {
            "occupied_beds": self.occupied_beds,
            "free_beds": self.free_beds,
            "unallocated_patients": self.unallocated_patients,
        }


def daily_report(store: CsvStore) -> DailyReport:
    beds = store.load_beds()
    allocated = {a.patient_id for a in store.load_allocations()}
    occupied = sum(1 for b in beds if b.is_occupied)
    return DailyReport(
        occupied_beds=occupied,
        free_beds=len(beds) - occupied,
        unallocated_patients=sum(1 for p in store.load_patients() if p.patient_id not in allocated),
        inventory=store.load_inventory(),
    )


def decisions_to_df(decisions: Sequence[AllocationDecision]) -> pd.DataFrame:
    records = [d.to_record() for d in decisions]
    df = pd.DataFrame.from_records(records, columns=DECISION_COLUMNS)
    # Keep ids integral when some rows have no bed.
    df["bedId"] = df["bedId"].astype("Int64")
    return df

