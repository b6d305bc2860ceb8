"""
Lightweight visualizations for one allocation batch.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Sequence

import matplotlib

# Use a non-interactive backend to avoid display issues in headless environments.
matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd

from .models import AllocationResult, Patient


def plot_batch(
    patients: Sequence[Patient],
    result: AllocationResult,
    inventory_before: Dict[str, int],
    outfile: Optional[Path] = None,
) -> None:
    fig, axes = plt.subplots(1, 2, figsize=(12, 4.5))

    # Outcome by urgency; unreached patients shown separately
    outcome = {d.patient_id: d.label for d in result.decisions}
    frame = pd.DataFrame(
        {
            "urgency": [p.urgency for p in patients],
            "outcome": [outcome.get(p.patient_id, "UNPROCESSED") for p in patients],
        }
    )
    if not frame.empty:
        frame.groupby(["urgency", "outcome"]).size().unstack(fill_value=0).plot(
            kind="bar", stacked=True, ax=axes[0]
        )
    axes[0].set_title("Decisions by urgency")
    axes[0].set_ylabel("Patients")

    # Inventory before vs after
    inv = pd.DataFrame({"before": pd.Series(inventory_before), "after": pd.Series(result.inventory)}).fillna(0)
    if not inv.empty:
        inv.plot(kind="bar", ax=axes[1], color=["tab:blue", "tab:orange"])
    axes[1].set_title("Resource inventory")

    plt.tight_layout()
    if outfile:
        plt.savefig(outfile, dpi=150)
    else:
        plt.show()
    plt.close(fig)
