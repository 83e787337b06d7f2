"""
Unit tests for the customer record model and its wire format.
"""

import json

import pytest
from pydantic import ValidationError

from crm_store.errors import SerializationFailure
from crm_store.models.customer import (
    PAYLOAD_DROPPED_MARKER,
    CartItem,
    CrystalAnalysis,
    CustomerRecord,
    Gender,
    ShippingDetails,
    WishItem,
)


class TestWireFormat:
    """Serialization keeps absent fields absent and uses camelCase keys."""

    def test_minimal_record_round_trips_without_placeholders(self):
        wire = {"id": "a", "createdAt": 1000}

        record = CustomerRecord.from_wire(wire)

        assert record.analysis is None
        assert record.generated_image_url is None
        assert record.shipping_details is None
        assert record.to_wire() == wire

    def test_full_record_uses_camel_case_keys(self, make_record):
        record = make_record(
            "a",
            1000,
            birth_date="1990-01-01",
            is_time_unsure=True,
            gender=Gender.FEMALE,
            wishes=[WishItem(type="love", description="meet someone")],
            analysis=CrystalAnalysis(lucky_element="Water", suggested_crystals=["Amethyst"]),
            generated_image_url="data:image/png;base64,AAAA",
            shipping_details=ShippingDetails(
                real_name="Lin",
                purification_bag_qty=2,
                items=[CartItem(name="Bracelet", quantity=1, price=1280)],
                total_price=1480,
            ),
        )

        wire = record.to_wire()

        assert wire["createdAt"] == 1000
        assert wire["birthDate"] == "1990-01-01"
        assert wire["isTimeUnsure"] is True
        assert wire["gender"] == "女"
        assert wire["analysis"] == {"luckyElement": "Water", "suggestedCrystals": ["Amethyst"]}
        assert wire["generatedImageUrl"] == "data:image/png;base64,AAAA"
        assert wire["shippingDetails"]["purificationBagQty"] == 2
        assert wire["shippingDetails"]["items"] == [{"name": "Bracelet", "quantity": 1, "price": 1280}]

    def test_json_round_trip_preserves_record(self, make_heavy_record):
        record = make_heavy_record("a", 1000, gender=Gender.OTHER)

        restored = CustomerRecord.from_json(record.to_json())

        assert restored == record
        assert restored.gender is Gender.OTHER

    def test_unknown_keys_are_preserved(self):
        record = CustomerRecord.from_wire({"id": "a", "createdAt": 1, "legacyFlag": True})

        assert record.to_wire()["legacyFlag"] is True

    def test_legacy_single_wish_record_is_readable(self):
        record = CustomerRecord.from_wire({"id": "old", "createdAt": 5, "wish": "health"})

        assert record.wish == "health"
        assert record.wishes is None

    @pytest.mark.parametrize(
        "data",
        [
            {"createdAt": 1000},
            {"id": "", "createdAt": 1000},
            {"id": "a"},
            {"id": "a", "createdAt": -1},
            {"id": "a", "createdAt": "yesterday"},
            "not a record",
        ],
    )
    def test_invalid_wire_data_raises_serialization_failure(self, data):
        with pytest.raises(SerializationFailure):
            CustomerRecord.from_wire(data)

    def test_invalid_json_raises_serialization_failure(self):
        with pytest.raises(SerializationFailure):
            CustomerRecord.from_json("{broken")


class TestImmutableFields:
    def test_id_cannot_be_reassigned(self, make_record):
        record = make_record("a")
        with pytest.raises(ValidationError):
            record.id = "b"

    def test_created_at_cannot_be_reassigned(self, make_record):
        record = make_record("a", 1000)
        with pytest.raises(ValidationError):
            record.created_at = 2000


class TestHeavyPayloadDegradation:
    def test_payload_removed_and_marker_appended(self, make_heavy_record):
        record = make_heavy_record("a")

        reduced = record.without_heavy_payload()

        assert reduced.generated_image_url is None
        assert reduced.analysis.visual_description == f"Rose quartz bracelet {PAYLOAD_DROPPED_MARKER}"
        assert reduced.analysis.element == "Fire"
        assert reduced.is_degraded
        assert "generatedImageUrl" not in reduced.to_wire()

    def test_original_is_left_untouched(self, make_heavy_record):
        record = make_heavy_record("a")

        record.without_heavy_payload()

        assert record.has_heavy_payload
        assert not record.is_degraded

    def test_marker_becomes_description_when_there_is_no_analysis(self, make_record):
        record = make_record("a", generated_image_url="data:image/png;base64,AAAA")

        reduced = record.without_heavy_payload()

        assert reduced.analysis.visual_description == PAYLOAD_DROPPED_MARKER

    def test_marker_is_not_appended_twice(self, make_heavy_record):
        once = make_heavy_record("a").without_heavy_payload()

        twice = once.without_heavy_payload()

        assert twice.analysis.visual_description.count(PAYLOAD_DROPPED_MARKER) == 1

    def test_custom_marker(self, make_heavy_record):
        reduced = make_heavy_record("a").without_heavy_payload("[NO_IMAGE]")

        assert reduced.analysis.visual_description.endswith("[NO_IMAGE]")


class TestCompletion:
    def test_attaching_shipping_details_marks_record_completed(self, make_record):
        record = make_record("a", 1000)
        assert not record.is_completed

        completed = record.with_shipping_details(ShippingDetails(real_name="Lin", total_price=980))

        assert completed.is_completed
        assert completed.id == "a"
        assert completed.created_at == 1000
        assert json.loads(completed.to_json())["shippingDetails"] == {"realName": "Lin", "totalPrice": 980}
