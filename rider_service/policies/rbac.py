#rider_service/policies/rbac.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Set

from rider_service.models.enums import PartyRole


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: PartyRole
    display_name: str = "Unknown"


# --- Core action constants ---
ACTION_PUBLISH_RIDER = "PUBLISH_RIDER"
ACTION_OPEN_ACKNOWLEDGMENT = "OPEN_ACKNOWLEDGMENT"
ACTION_UPDATE_CHECKLIST = "UPDATE_CHECKLIST"
ACTION_ACKNOWLEDGE = "ACKNOWLEDGE"
ACTION_PROPOSE = "PROPOSE_MODIFICATION"
ACTION_RESPOND = "RESPOND_TO_MODIFICATIONS"
ACTION_FINALIZE = "FINALIZE"
ACTION_ARCHIVE = "ARCHIVE"

_SHARED = {ACTION_OPEN_ACKNOWLEDGMENT, ACTION_PROPOSE, ACTION_RESPOND, ACTION_FINALIZE, ACTION_ARCHIVE}


def allowed_actions(role: PartyRole) -> Set[str]:
    """
    Pure RBAC: which actions a role may attempt. Whether the attempt is legal
    right now is the state machine's call.
    """

    if role == PartyRole.ARTIST:
        return _SHARED | {ACTION_PUBLISH_RIDER}

    if role == PartyRole.VENUE:
        return _SHARED | {ACTION_UPDATE_CHECKLIST, ACTION_ACKNOWLEDGE}

    return set()


def require_action(principal: Principal, action: str) -> None:
    if action not in allowed_actions(principal.role):
        raise PermissionError(
            f"Role {principal.role.value} not permitted for action {action}."
        )
