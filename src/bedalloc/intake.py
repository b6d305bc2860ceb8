"""
Intake normalizer: turn raw patient/bed/resource records into a validated Snapshot.

Records can be any sequence of mappings (rows fetched from a store, JSON payloads)
or a pandas DataFrame. Both the storage column names (``required_resource``,
``bed_type``) and the interface names (``requiredResource``, ``bedType``) are
understood.
"""

from __future__ import annotations

import numbers
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .errors import ValidationError
from .models import Bed, Patient, Snapshot

Records = Union[pd.DataFrame, Iterable[Mapping[str, Any]]]

_TRUE_FLAGS = {"1", "true", "yes", "y"}
_FALSE_FLAGS = {"0", "false", "no", "n", ""}


def _to_records(raw: Records) -> List[Mapping[str, Any]]:
    if isinstance(raw, pd.DataFrame):
        return raw.to_dict(orient="records")
    records = list(raw)
    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise ValidationError(f"expected a mapping, got {type(record).__name__}", index=index)
    return records


def _field(record: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in record:
            return record[name]
    return None


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return bool(pd.api.types.is_scalar(value) and pd.isna(value))


def _coerce_int(value: Any, field: str, index: Optional[int]) -> int:
    if _is_missing(value):
        raise ValidationError("missing required numeric value", field, index)
    if isinstance(value, (bool, np.bool_)):
        raise ValidationError(f"expected an integer, got boolean {value!r}", field, index)
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        if float(value).is_integer():
            return int(value)
        raise ValidationError(f"expected an integer, got {value!r}", field, index)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            raise ValidationError(f"non-numeric value {value!r}", field, index) from None
        if number.is_integer():
            return int(number)
        raise ValidationError(f"expected an integer, got {value!r}", field, index)
    raise ValidationError(f"non-numeric value {value!r}", field, index)


def _clean_str(value: Any) -> str:
    if _is_missing(value):
        return ""
    return str(value).strip()


def _coerce_flag(value: Any, field: str, index: int) -> bool:
    if _is_missing(value):
        return False
    if isinstance(value, numbers.Number):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUE_FLAGS:
        return True
    if text in _FALSE_FLAGS:
        return False
    raise ValidationError(f"unrecognised flag {value!r}", field, index)


def normalize_patients(records: Records) -> Tuple[Patient, ...]:
    patients: List[Patient] = []
    seen: Dict[int, int] = {}
    for index, record in enumerate(_to_records(records)):
        patient_id = _coerce_int(_field(record, "id", "patient_id", "patientId"), "id", index)
        if patient_id in seen:
            raise ValidationError(
                f"duplicate patient id {patient_id} (first seen in record {seen[patient_id]})", "id", index
            )
        seen[patient_id] = index
        patients.append(
            Patient(
                patient_id=patient_id,
                name=_clean_str(_field(record, "name")),
                urgency=_coerce_int(_field(record, "urgency"), "urgency", index),
                required_resource=_clean_str(
                    _field(record, "required_resource", "requiredResource")
                ),
            )
        )
    return tuple(patients)


def normalize_beds(records: Records) -> Tuple[Bed, ...]:
    """Validate the bed pool, keeping supplied order and dropping exact repeats."""
    beds: List[Bed] = []
    seen: Dict[int, Bed] = {}
    for index, record in enumerate(_to_records(records)):
        bed = Bed(
            bed_id=_coerce_int(_field(record, "id", "bed_id", "bedId"), "id", index),
            ward=_clean_str(_field(record, "ward")),
            bed_type=_clean_str(_field(record, "bed_type", "bedType")),
            is_occupied=_coerce_flag(_field(record, "is_occupied", "isOccupied"), "is_occupied", index),
        )
        first = seen.get(bed.bed_id)
        if first is None:
            seen[bed.bed_id] = bed
            beds.append(bed)
        elif (first.ward, first.bed_type) != (bed.ward, bed.bed_type):
            raise ValidationError(
                f"bed id {bed.bed_id} listed twice with different ward/type", "id", index
            )
    return tuple(beds)


def normalize_inventory(raw: Union[Mapping[str, Any], Records]) -> Dict[str, int]:
    if isinstance(raw, Mapping):
        items = [(name, qty, None) for name, qty in raw.items()]
    else:
        items = [
            (_field(record, "name"), _field(record, "quantity"), index)
            for index, record in enumerate(_to_records(raw))
        ]

    inventory: Dict[str, int] = {}
    for name, qty, index in items:
        clean_name = _clean_str(name)
        if not clean_name:
            raise ValidationError("resource name is blank", "name", index)
        if clean_name in inventory:
            raise ValidationError(f"duplicate resource '{clean_name}'", "name", index)
        quantity = _coerce_int(qty, f"quantity[{clean_name}]", index)
        if quantity < 0:
            raise ValidationError(f"negative quantity {quantity}", f"quantity[{clean_name}]", index)
        inventory[clean_name] = quantity
    return inventory


def normalize_snapshot(
    patients: Records, beds: Records, inventory: Union[Mapping[str, Any], Records]
) -> Snapshot:
    return Snapshot(
        patients=normalize_patients(patients),
        beds=normalize_beds(beds),
        inventory=normalize_inventory(inventory),
    )
