"""
Centralized allocator and generator defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List


WARDS: List[str] = ["emergency", "icu", "general", "surgical"]
BED_TYPES: List[str] = ["standard", "icu", "isolation"]
RESOURCE_NAMES: List[str] = ["oxygen", "ventilator", "dialysis", "monitor"]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class AllocatorConfig:
    # False reproduces the silent stop once beds run out
    emit_no_bed_skips: bool = False


@dataclass
class GenerationConfig:
    seed: int = 42
    patients: int = 40
    beds: int = 25
    resource_share: float = 0.35  # fraction of patients needing a resource
    resource_quantities: Dict[str, int] = field(
        default_factory=lambda: {"oxygen": 6, "ventilator": 3, "dialysis": 2, "monitor": 5}
    )
    urgency_low: int = 1
    urgency_high: int = 10
