#rider_service/policies/checklist_policy.py
from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, Optional, Sequence, Tuple

from rider_service.core.errors import (
    IncompleteAcknowledgmentError,
    MissingNotesError,
    ValidationError,
)
from rider_service.core.rider_fields import get_field
from rider_service.core.types import RequirementChecklistEntry, RiderDocument
from rider_service.models.enums import FieldType

Checklist = Tuple[RequirementChecklistEntry, ...]


# field -> (category, human label). Order here is checklist order.
CHECKLIST_POLICY: Dict[str, Tuple[str, str]] = {
    "paSystemRequired": ("Technical", "PA System Required"),
    "microphoneType": ("Technical", "Microphones"),
    "monitorMixRequired": ("Technical", "Monitor Mix Required"),
    "lightingRequired": ("Technical", "Lighting Required"),
    "lightingType": ("Technical", "Lighting"),
    "backdropRequired": ("Technical", "Backdrop Required"),
    "dressingRoomRequired": ("Hospitality", "Dressing Room"),
    "cateringProvided": ("Hospitality", "Catering Required"),
    "parkingRequired": ("Hospitality", "Parking Required"),
    "parkingType": ("Hospitality", "Parking"),
    "accessibleEntrance": ("Hospitality", "Accessible Entrance"),
    "travelProvided": ("Travel", "Travel Provided"),
    "travelMethod": ("Travel", "Travel"),
    "accommodationProvided": ("Travel", "Hotel Accommodation"),
}


def derive_from_document(
    document: RiderDocument,
    policy: Optional[Dict[str, Tuple[str, str]]] = None,
) -> Checklist:
    """
    Snapshot the curated boolean/enum fields of a rider into checklist rows.
    Booleans that are absent or False and enums that are absent produce no row.
    """
    policy = CHECKLIST_POLICY if policy is None else policy
    rows = []

    for field_name, (category, label) in policy.items():
        field = get_field(field_name)
        value = document.fields.get(field_name)

        if field.type == FieldType.boolean:
            if value is not True:
                continue
            text = label
        elif field.type == FieldType.enum:
            if value is None:
                continue
            text = f"{label}: {value}"
        else:
            raise ValidationError(f"Checklist policy only covers boolean/enum fields, got {field_name}.")

        rows.append(
            RequirementChecklistEntry(
                field_name=field_name,
                category=category,
                requirement_text=text,
            )
        )

    return tuple(rows)


def _replace_entry(checklist: Checklist, field_name: str, **changes) -> Checklist:
    found = False
    out = []
    for entry in checklist:
        if entry.field_name == field_name:
            found = True
            entry = replace(entry, **changes)
        out.append(entry)
    if not found:
        raise ValidationError(f"No checklist entry for field {field_name}.")
    return tuple(out)


def toggle_can_meet(checklist: Checklist, field_name: str, can_meet: bool) -> Checklist:
    return _replace_entry(checklist, field_name, can_meet=can_meet)


def mark_acknowledged(checklist: Checklist, field_name: str, acknowledged: bool = True) -> Checklist:
    return _replace_entry(checklist, field_name, acknowledged_by_user=acknowledged)


def ensure_matches_snapshot(submitted: Sequence[RequirementChecklistEntry], snapshot: Checklist) -> Checklist:
    """
    A caller-submitted checklist may only change the two flags; the rows
    themselves are fixed at acknowledgment creation.
    """
    def _shape(rows: Iterable[RequirementChecklistEntry]):
        return [(r.field_name, r.category, r.requirement_text) for r in rows]

    if _shape(submitted) != _shape(snapshot):
        raise ValidationError("Submitted checklist does not match the rider snapshot.")
    return tuple(submitted)


def validate_for_acknowledge(checklist: Checklist, notes: Optional[str]) -> None:
    pending = [e.requirement_text for e in checklist if not e.acknowledged_by_user]
    if pending:
        raise IncompleteAcknowledgmentError(
            f"Acknowledge all requirements before proceeding ({len(pending)} outstanding)."
        )

    cannot_meet = [e.requirement_text for e in checklist if not e.can_meet]
    if cannot_meet and not (notes or "").strip():
        raise MissingNotesError(
            "Notes are required explaining which requirements cannot be met: "
            + ", ".join(cannot_meet)
        )
