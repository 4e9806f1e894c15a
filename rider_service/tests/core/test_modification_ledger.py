from dataclasses import replace
from datetime import datetime, timezone

import pytest

from rider_service.core.errors import NegotiationInvariantError, NotFoundError
from rider_service.models.enums import ModificationStatus, PartyRole
from rider_service.services import modification_ledger as ledger_ops

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def propose(ledger, field_name, value, by=PartyRole.VENUE):
    return ledger_ops.append(
        ledger,
        field_name=field_name,
        original_value=True,
        proposed_value=value,
        reason="venue constraint",
        notes=None,
        proposed_by=by,
        status=ModificationStatus.proposed,
        created_at=NOW,
    )


def test_append_assigns_gap_free_ids():
    ledger = propose((), "dressingRoomRequired", False)
    ledger = propose(ledger, "parkingRequired", False)

    assert [e.entry_id for e in ledger] == [1, 2]
    assert ledger_ops.next_entry_id(ledger) == 3
    assert len(ledger_ops.open_entries(ledger)) == 2


def test_one_open_entry_per_field():
    ledger = propose((), "parkingRequired", False)
    with pytest.raises(NegotiationInvariantError):
        propose(ledger, "parkingRequired", True)


def test_get_entry():
    ledger = propose((), "parkingRequired", False)
    assert ledger_ops.get_entry(ledger, 1).field_name == "parkingRequired"
    with pytest.raises(NotFoundError):
        ledger_ops.get_entry(ledger, 2)
    with pytest.raises(NotFoundError):
        ledger_ops.get_entry(ledger, 0)


def test_resolve_moves_open_to_terminal_once():
    ledger = propose((), "parkingRequired", False)
    resolved = ledger_ops.resolve(
        ledger, [1], status=ModificationStatus.approved, resolved_by=PartyRole.ARTIST, resolved_at=NOW, revision=3
    )

    assert resolved[0].status == ModificationStatus.approved
    assert resolved[0].resolved_in_revision == 3
    assert ledger[0].status == ModificationStatus.proposed

    with pytest.raises(NegotiationInvariantError):
        ledger_ops.resolve(
            resolved, [1], status=ModificationStatus.rejected, resolved_by=PartyRole.ARTIST, resolved_at=NOW, revision=4
        )


def test_supersede_rejects_prior_and_appends_counter():
    ledger = propose((), "parkingRequired", False)
    ledger = ledger_ops.supersede(
        ledger,
        field_name="parkingRequired",
        original_value=True,
        proposed_value=True,
        reason="street parking works",
        notes=None,
        proposed_by=PartyRole.ARTIST,
        created_at=NOW,
        revision=3,
    )

    first, second = ledger
    assert first.status == ModificationStatus.rejected
    assert first.superseded_by == 2
    assert second.status == ModificationStatus.counter_proposed
    assert [e.entry_id for e in ledger_ops.open_entries(ledger)] == [2]
    ledger_ops.check_invariants(ledger)


def test_check_invariants_catches_gaps():
    ledger = propose((), "parkingRequired", False)
    broken = (replace(ledger[0], entry_id=2),)
    with pytest.raises(NegotiationInvariantError):
        ledger_ops.check_invariants(broken)


def test_forward_only():
    before = propose((), "parkingRequired", False)
    after = ledger_ops.resolve(
        before, [1], status=ModificationStatus.rejected, resolved_by=PartyRole.ARTIST, resolved_at=NOW, revision=3, reason="no"
    )
    ledger_ops.check_forward_only(before, after)

    with pytest.raises(NegotiationInvariantError):
        ledger_ops.check_forward_only(after, before)

    rewritten = (replace(before[0], proposed_value=True),)
    with pytest.raises(NegotiationInvariantError):
        ledger_ops.check_forward_only(before, rewritten)


def test_apply_approved_uses_only_approved_entries():
    ledger = propose((), "parkingRequired", False)
    ledger = propose(ledger, "dressingRoomRequired", False)
    ledger = ledger_ops.resolve(
        ledger, [1], status=ModificationStatus.approved, resolved_by=PartyRole.ARTIST, resolved_at=NOW, revision=4
    )
    ledger = ledger_ops.resolve(
        ledger, [2], status=ModificationStatus.rejected, resolved_by=PartyRole.ARTIST, resolved_at=NOW, revision=5, reason="no"
    )

    terms, applied = ledger_ops.apply_approved({"parkingRequired": True, "dressingRoomRequired": True}, ledger)
    assert terms == {"parkingRequired": False, "dressingRoomRequired": True}
    assert applied == {"parkingRequired": 1}
