# rider_service/services/modification_ledger.py
"""
Append-only ledger of field-level change proposals.

Entries are never removed or reordered; the only permitted edit is moving an
open entry (proposed / counter_proposed) to a terminal status exactly once.
Every function here is pure and returns a new tuple.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from rider_service.core.errors import NegotiationInvariantError, NotFoundError
from rider_service.core.types import ModificationEntry
from rider_service.models.enums import ModificationStatus, PartyRole

Ledger = Tuple[ModificationEntry, ...]


def open_entries(ledger: Ledger) -> List[ModificationEntry]:
    return [e for e in ledger if e.is_open]


def open_entry_for_field(ledger: Ledger, field_name: str) -> Optional[ModificationEntry]:
    for e in ledger:
        if e.field_name == field_name and e.is_open:
            return e
    return None


def next_entry_id(ledger: Ledger) -> int:
    return ledger[-1].entry_id + 1 if ledger else 1


def get_entry(ledger: Ledger, entry_id: int) -> ModificationEntry:
    # entry ids are 1..n with no gaps
    if 1 <= entry_id <= len(ledger):
        return ledger[entry_id - 1]
    raise NotFoundError(f"Modification entry {entry_id} not found.")


def append(
    ledger: Ledger,
    *,
    field_name: str,
    original_value,
    proposed_value,
    reason: str,
    notes: Optional[str],
    proposed_by: PartyRole,
    status: ModificationStatus,
    created_at: datetime,
) -> Ledger:
    if open_entry_for_field(ledger, field_name) is not None:
        raise NegotiationInvariantError(f"Field {field_name} already has an open entry.")

    entry = ModificationEntry(
        entry_id=next_entry_id(ledger),
        field_name=field_name,
        original_value=original_value,
        proposed_value=proposed_value,
        reason=reason,
        notes=notes,
        proposed_by=proposed_by,
        status=status,
        created_at=created_at,
    )
    return ledger + (entry,)


def resolve(
    ledger: Ledger,
    entry_ids: Iterable[int],
    *,
    status: ModificationStatus,
    resolved_by: PartyRole,
    resolved_at: datetime,
    revision: int,
    reason: Optional[str] = None,
    superseded_by: Optional[int] = None,
) -> Ledger:
    """
    Move open entries to a terminal status. Touching a terminal entry is a bug
    here; callers validate openness first and raise a user-facing error.
    """
    if status.is_open:
        raise NegotiationInvariantError("resolve() requires a terminal status.")

    ids = set(entry_ids)
    out = []
    for e in ledger:
        if e.entry_id in ids:
            if not e.is_open:
                raise NegotiationInvariantError(f"Entry {e.entry_id} is already {e.status.value}.")
            e = replace(
                e,
                status=status,
                resolved_by=resolved_by,
                resolved_at=resolved_at,
                resolution_reason=reason,
                resolved_in_revision=revision,
                superseded_by=superseded_by,
            )
        out.append(e)
    return tuple(out)


def supersede(
    ledger: Ledger,
    *,
    field_name: str,
    original_value,
    proposed_value,
    reason: str,
    notes: Optional[str],
    proposed_by: PartyRole,
    created_at: datetime,
    revision: int,
) -> Ledger:
    """
    Counter-proposal: reject the open entry on field_name and append the
    replacement as counter_proposed, as one step.
    """
    prior = open_entry_for_field(ledger, field_name)
    if prior is None:
        raise NegotiationInvariantError(f"No open entry on {field_name} to supersede.")

    new_id = next_entry_id(ledger)
    ledger = resolve(
        ledger,
        [prior.entry_id],
        status=ModificationStatus.rejected,
        resolved_by=proposed_by,
        resolved_at=created_at,
        revision=revision,
        reason="superseded by counter-proposal",
        superseded_by=new_id,
    )
    return append(
        ledger,
        field_name=field_name,
        original_value=original_value,
        proposed_value=proposed_value,
        reason=reason,
        notes=notes,
        proposed_by=proposed_by,
        status=ModificationStatus.counter_proposed,
        created_at=created_at,
    )


def check_invariants(ledger: Ledger) -> None:
    """
    Gap-free increasing ids and at most one open entry per field.
    """
    seen_open = set()
    for position, e in enumerate(ledger, start=1):
        if e.entry_id != position:
            raise NegotiationInvariantError(
                f"Ledger order broken at position {position}: entry_id={e.entry_id}."
            )
        if e.is_open:
            if e.field_name in seen_open:
                raise NegotiationInvariantError(f"More than one open entry for {e.field_name}.")
            seen_open.add(e.field_name)
        elif e.resolved_in_revision is None:
            raise NegotiationInvariantError(f"Entry {e.entry_id} is terminal without a resolution.")


def check_forward_only(before: Ledger, after: Ledger) -> None:
    """
    `after` must extend `before`: same prefix entries, each either unchanged or
    moved from open to terminal.
    """
    if len(after) < len(before):
        raise NegotiationInvariantError("Ledger shrank.")
    for old, new in zip(before, after):
        if old == new:
            continue
        same_payload = (
            old.entry_id == new.entry_id
            and old.field_name == new.field_name
            and old.original_value == new.original_value
            and old.proposed_value == new.proposed_value
            and old.proposed_by == new.proposed_by
            and old.created_at == new.created_at
        )
        if not same_payload or not old.is_open or new.is_open:
            raise NegotiationInvariantError(f"Entry {old.entry_id} was rewritten.")


def apply_approved(fields: Dict[str, Any], ledger: Ledger) -> Tuple[Dict[str, Any], Dict[str, int]]:
    """
    Rider fields with every approved change applied in ledger order.
    Returns (terms, {field_name: entry_id that set it}).
    """
    terms = dict(fields)
    applied: Dict[str, int] = {}
    for e in ledger:
        if e.status == ModificationStatus.approved:
            terms[e.field_name] = e.proposed_value
            applied[e.field_name] = e.entry_id
    return terms, applied
