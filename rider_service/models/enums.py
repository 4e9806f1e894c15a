#rider_service/models/enums.py
from __future__ import annotations
from enum import Enum


class PartyRole(str, Enum):
    ARTIST = "artist"
    VENUE = "venue"


class AcknowledgmentStatus(str, Enum):
    pending = "pending"
    acknowledged = "acknowledged"
    modifications_proposed = "modifications_proposed"
    accepted = "accepted"
    rejected = "rejected"


class ModificationStatus(str, Enum):
    proposed = "proposed"
    counter_proposed = "counter_proposed"
    approved = "approved"
    rejected = "rejected"

    @property
    def is_open(self) -> bool:
        return self in (ModificationStatus.proposed, ModificationStatus.counter_proposed)


class FieldType(str, Enum):
    boolean = "boolean"
    integer = "integer"
    decimal = "decimal"
    string = "string"
    enum = "enum"
