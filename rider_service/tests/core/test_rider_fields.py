from decimal import Decimal

import pytest

from rider_service.core.errors import ValidationError
from rider_service.core.rider_fields import (
    REQUIRED_FIELDS,
    coerce_value,
    decode_fields,
    encode_fields,
    get_field,
    validate_fields,
)
from rider_service.models.enums import FieldType


def test_catalog_types():
    assert get_field("performanceFee").type == FieldType.decimal
    assert get_field("microphoneType").type == FieldType.enum
    assert "wireless" in get_field("microphoneType").choices
    assert REQUIRED_FIELDS == {"performanceDuration", "performanceFee"}


def test_unknown_field_rejected():
    with pytest.raises(ValidationError):
        get_field("fogMachine")
    with pytest.raises(ValidationError):
        coerce_value("fogMachine", True)


def test_boolean_is_strict():
    assert coerce_value("paSystemRequired", False) is False
    with pytest.raises(ValidationError):
        coerce_value("paSystemRequired", 1)
    with pytest.raises(ValidationError):
        coerce_value("paSystemRequired", "true")


def test_integer_rules():
    assert coerce_value("performanceDuration", 90) == 90
    with pytest.raises(ValidationError):
        coerce_value("performanceDuration", True)
    with pytest.raises(ValidationError):
        coerce_value("performanceDuration", -5)
    with pytest.raises(ValidationError):
        coerce_value("performanceDuration", 90.5)


def test_decimal_accepts_numbers_and_strings():
    assert coerce_value("performanceFee", "1500.50") == Decimal("1500.50")
    assert coerce_value("performanceFee", 10.5) == Decimal("10.5")
    assert coerce_value("performanceFee", 300) == Decimal("300")


@pytest.mark.parametrize("bad", ["abc", "NaN", "-1", True])
def test_decimal_rejects_garbage(bad):
    with pytest.raises(ValidationError):
        coerce_value("performanceFee", bad)


def test_enum_choices():
    assert coerce_value("parkingType", "loading_dock") == "loading_dock"
    with pytest.raises(ValidationError):
        coerce_value("parkingType", "helipad")


def test_string_length_limit():
    with pytest.raises(ValidationError):
        coerce_value("specialRequests", "x" * 2001)


def test_null_values_rejected():
    with pytest.raises(ValidationError):
        coerce_value("specialRequests", None)


def test_validate_fields_requires_policy_set():
    with pytest.raises(ValidationError) as exc:
        validate_fields({"performanceDuration": 60})
    assert "performanceFee" in exc.value.message

    clean = validate_fields({"performanceDuration": 60, "performanceFee": "100"})
    assert clean["performanceFee"] == Decimal("100")


def test_decimals_travel_as_strings():
    encoded = encode_fields({"performanceFee": Decimal("99.90"), "paSystemRequired": True})
    assert encoded == {"performanceFee": "99.90", "paSystemRequired": True}
    assert decode_fields(encoded)["performanceFee"] == Decimal("99.90")
