"""
Synthetic ward data for demos: waiting patients, free beds and a resource inventory.
"""

from __future__ import annotations

from random import Random
from typing import Dict, List

import numpy as np

from .config import BED_TYPES, RESOURCE_NAMES, WARDS, GenerationConfig
from .models import Bed, Patient, Snapshot

FIRST_NAMES = ["Ana", "Ben", "Chen", "Dara", "Eli", "Fatima", "Goran", "Hana", "Ivo", "Jun", "Kofi", "Lena"]
LAST_NAMES = ["Silva", "Okafor", "Novak", "Haddad", "Kim", "Moreau", "Patel", "Berg", "Rossi", "Tanaka"]


def _draw_urgency(rng: np.random.Generator, cfg: GenerationConfig, size: int) -> np.ndarray:
    # Most arrivals are moderate; the tail toward high urgency is thin.
    span = cfg.urgency_high - cfg.urgency_low
    raw = rng.beta(2.0, 3.0, size=size) * span + cfg.urgency_low
    return np.clip(np.rint(raw), cfg.urgency_low, cfg.urgency_high).astype(int)


def generate_patients(cfg: GenerationConfig) -> List[Patient]:
    rng = Random(cfg.seed)
    urgencies = _draw_urgency(np.random.default_rng(cfg.seed), cfg, cfg.patients)
    resources = list(cfg.resource_quantities) or RESOURCE_NAMES
    patients: List[Patient] = []
    for i in range(cfg.patients):
        needs = rng.random() < cfg.resource_share
        patients.append(
            Patient(
                patient_id=i + 1,
                name=f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}",
                urgency=int(urgencies[i]),
                required_resource=rng.choice(resources) if needs else "",
            )
        )
    return patients


def generate_beds(cfg: GenerationConfig) -> List[Bed]:
    rng = Random(cfg.seed + 999)
    beds: List[Bed] = []
    for i in range(cfg.beds):
        ward = WARDS[i % len(WARDS)]
        bed_type = "icu" if ward == "icu" else rng.choice(BED_TYPES)
        beds.append(Bed(bed_id=100 + i + 1, ward=ward, bed_type=bed_type))
    return beds


def generate_inventory(cfg: GenerationConfig) -> Dict[str, int]:
    return dict(cfg.resource_quantities)


def generate_snapshot(cfg: GenerationConfig) -> Snapshot:
    return Snapshot(
        patients=tuple(generate_patients(cfg)),
        beds=tuple(generate_beds(cfg)),
        inventory=generate_inventory(cfg),
    )
