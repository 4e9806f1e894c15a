# rider_service/core/rider_fields.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, FrozenSet, Mapping, Optional

from rider_service.core.errors import ValidationError
from rider_service.models.enums import FieldType


@dataclass(frozen=True)
class RiderField:
    name: str
    type: FieldType
    section: str
    choices: FrozenSet[str] = frozenset()


def _f(name: str, type_: FieldType, section: str, *choices: str) -> RiderField:
    return RiderField(name=name, type=type_, section=section, choices=frozenset(choices))


BOOL, INT, DEC, STR, ENUM = (
    FieldType.boolean,
    FieldType.integer,
    FieldType.decimal,
    FieldType.string,
    FieldType.enum,
)

# ─────────────────────────────────────────────
# FIELD CATALOG (rider template columns)
# ─────────────────────────────────────────────

RIDER_FIELDS: Dict[str, RiderField] = {
    f.name: f
    for f in (
        # performance
        _f("performanceType", STR, "performance"),
        _f("performanceDuration", INT, "performance"),
        _f("setupTimeRequired", INT, "performance"),
        _f("soundcheckTimeRequired", INT, "performance"),
        _f("teardownTimeRequired", INT, "performance"),
        _f("numberOfPerformers", INT, "performance"),
        _f("performanceFee", DEC, "financial"),
        _f("depositAmount", DEC, "financial"),
        # technical
        _f("paSystemRequired", BOOL, "technical"),
        _f("microphoneType", ENUM, "technical", "wired", "wireless", "headset", "instrument"),
        _f("monitorMixRequired", BOOL, "technical"),
        _f("diBoxesNeeded", INT, "technical"),
        _f("lightingRequired", BOOL, "technical"),
        _f("lightingType", ENUM, "technical", "standard", "theatrical", "concert", "ambient"),
        _f("stageDimensions", STR, "technical"),
        _f("stageHeight", DEC, "technical"),
        _f("backdropRequired", BOOL, "technical"),
        _f("bringingOwnEquipment", BOOL, "technical"),
        _f("powerRequirements", STR, "technical"),
        # hospitality
        _f("dressingRoomRequired", BOOL, "hospitality"),
        _f("cateringProvided", BOOL, "hospitality"),
        _f("specificDietaryNeeds", STR, "hospitality"),
        _f("parkingRequired", BOOL, "hospitality"),
        _f("parkingType", ENUM, "hospitality", "street", "lot", "garage", "loading_dock"),
        _f("loadInAccess", STR, "hospitality"),
        _f("accessibleEntrance", BOOL, "hospitality"),
        # travel & accommodation
        _f("travelProvided", BOOL, "travel"),
        _f("travelMethod", ENUM, "travel", "car", "train", "flight", "van"),
        _f("accommodationProvided", BOOL, "travel"),
        _f("numberOfRooms", INT, "travel"),
        # merchandise & media
        _f("merchandiseSales", BOOL, "merchandise"),
        _f("merchandiseCut", DEC, "merchandise"),
        _f("photographyAllowed", BOOL, "merchandise"),
        _f("videoRecordingAllowed", BOOL, "merchandise"),
        # additional
        _f("specialRequests", STR, "additional"),
        _f("emergencyContact", STR, "additional"),
        _f("additionalNotes", STR, "additional"),
    )
}

REQUIRED_FIELDS: FrozenSet[str] = frozenset({"performanceDuration", "performanceFee"})

MAX_STRING_LENGTH = 2000


def get_field(name: str) -> RiderField:
    field = RIDER_FIELDS.get(name)
    if field is None:
        raise ValidationError(f"Unknown rider field: {name}")
    return field


def coerce_value(name: str, value: Any) -> Any:
    """
    Validate a single value against its declared type and return the
    canonical Python value (bool, int, Decimal or str).
    """
    field = get_field(name)

    if value is None:
        raise ValidationError(f"{name} must not be null.")

    if field.type == FieldType.boolean:
        if not isinstance(value, bool):
            raise ValidationError(f"{name} must be a boolean.")
        return value

    if field.type == FieldType.integer:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{name} must be an integer.")
        if value < 0:
            raise ValidationError(f"{name} must be >= 0.")
        return value

    if field.type == FieldType.decimal:
        if isinstance(value, bool):
            raise ValidationError(f"{name} must be a decimal.")
        try:
            dec = Decimal(str(value)) if isinstance(value, (int, float, str)) else value
        except InvalidOperation:
            raise ValidationError(f"{name} must be a decimal.")
        if not isinstance(dec, Decimal) or not dec.is_finite():
            raise ValidationError(f"{name} must be a decimal.")
        if dec < 0:
            raise ValidationError(f"{name} must be >= 0.")
        return dec

    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string.")

    if field.type == FieldType.enum:
        if value not in field.choices:
            allowed = ", ".join(sorted(field.choices))
            raise ValidationError(f"{name} must be one of: {allowed}.")
        return value

    if len(value) > MAX_STRING_LENGTH:
        raise ValidationError(f"{name} exceeds {MAX_STRING_LENGTH} characters.")
    return value


def validate_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Full-document validation: every value typed, every required field present.
    """
    missing = sorted(REQUIRED_FIELDS - set(fields))
    if missing:
        raise ValidationError(f"Missing required rider fields: {', '.join(missing)}")

    return {name: coerce_value(name, value) for name, value in fields.items()}


# ─────────────────────────────────────────────
# JSON ENCODING (decimals travel as strings)
# ─────────────────────────────────────────────

def encode_value(name: str, value: Optional[Any]) -> Optional[Any]:
    if value is None:
        return None
    if get_field(name).type == FieldType.decimal:
        return str(value)
    return value


def decode_value(name: str, raw: Optional[Any]) -> Optional[Any]:
    if raw is None:
        return None
    if get_field(name).type == FieldType.decimal:
        return Decimal(str(raw))
    return raw


def encode_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    return {name: encode_value(name, value) for name, value in fields.items()}


def decode_fields(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {name: decode_value(name, value) for name, value in raw.items()}
