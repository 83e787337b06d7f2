# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Customer record model.

The record is the only persisted entity. Both storage tiers keep it in the
same JSON wire format: camelCase keys, with every absent optional field left
out entirely so that absence survives a round trip.
"""

from enum import Enum
from typing import Any, Final, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..errors import SerializationFailure

# Appended to the analysis text when the heavy payload is dropped for quota
PAYLOAD_DROPPED_MARKER: Final[str] = "[PAYLOAD_DROPPED_DUE_TO_QUOTA]"

Number = Union[int, float]


class WireModel(BaseModel):
    """Shared config: camelCase aliases, snake_case attributes, unknown keys kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class Gender(str, Enum):
    MALE = "男"
    FEMALE = "女"
    OTHER = "其他"


class WishItem(WireModel):
    type: Optional[str] = None
    description: Optional[str] = None


class Bazi(WireModel):
    year: Optional[str] = None
    month: Optional[str] = None
    day: Optional[str] = None
    time: Optional[str] = None


class FiveElements(WireModel):
    """Element balance as percentages (0-100)."""

    gold: Optional[Number] = None
    wood: Optional[Number] = None
    water: Optional[Number] = None
    fire: Optional[Number] = None
    earth: Optional[Number] = None


class CrystalAnalysis(WireModel):
    """Analysis attached to a record after creation."""

    zodiac_sign: Optional[str] = None
    element: Optional[str] = None
    bazi: Optional[Bazi] = None
    five_elements: Optional[FiveElements] = None
    lucky_element: Optional[str] = None
    suggested_crystals: Optional[list[str]] = None
    reasoning: Optional[str] = None
    visual_description: Optional[str] = None
    color_palette: Optional[list[str]] = None


class CartItem(WireModel):
    name: Optional[str] = None
    quantity: Optional[int] = None
    price: Optional[Number] = None
    image_url: Optional[str] = None


class ShippingDetails(WireModel):
    """Order completion data; attaching it marks a record completed."""

    real_name: Optional[str] = None
    phone: Optional[str] = None
    store_code: Optional[str] = None
    store_name: Optional[str] = None
    social_id: Optional[str] = None
    wrist_size: Optional[str] = None
    purification_bag_qty: Optional[int] = None
    preferred_colors: Optional[list[str]] = None
    items: Optional[list[CartItem]] = None
    total_quantity: Optional[int] = None
    coupon_code: Optional[str] = None
    discount_amount: Optional[Number] = None
    total_price: Optional[Number] = None


class CustomerRecord(WireModel):
    """
    A customer order record.

    `id` and `created_at` are fixed at creation. Everything else is passed
    through the store untouched, except `generated_image_url` (the heavy
    payload) which the secondary tier may drop under quota pressure.
    """

    id: str = Field(min_length=1, frozen=True)
    created_at: int = Field(ge=0, frozen=True, description="Epoch milliseconds")

    name: Optional[str] = None
    birth_date: Optional[str] = None
    birth_time: Optional[str] = None
    is_time_unsure: Optional[bool] = None
    gender: Optional[Gender] = None
    wishes: Optional[list[WishItem]] = None
    wish: Optional[str] = None  # legacy single-wish records
    is_standard_product: Optional[bool] = None

    analysis: Optional[CrystalAnalysis] = None
    generated_image_url: Optional[str] = None
    shipping_details: Optional[ShippingDetails] = None

    @property
    def has_heavy_payload(self) -> bool:
        return self.generated_image_url is not None

    @property
    def is_completed(self) -> bool:
        return self.shipping_details is not None

    @property
    def is_degraded(self) -> bool:
        """True if the heavy payload was dropped by the secondary tier."""
        return self.has_marker(PAYLOAD_DROPPED_MARKER)

    def has_marker(self, marker: str) -> bool:
        description = self.analysis.visual_description if self.analysis else None
        return bool(description) and marker in description

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible wire dict, omitting absent fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_wire(cls, data: Any) -> "CustomerRecord":
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise SerializationFailure(f"Invalid customer record: {e}") from e

    @classmethod
    def from_json(cls, raw: str | bytes) -> "CustomerRecord":
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise SerializationFailure(f"Invalid customer record JSON: {e}") from e

    def without_heavy_payload(self, marker: str = PAYLOAD_DROPPED_MARKER) -> "CustomerRecord":
        """
        Return a reduced copy with the heavy payload removed.

        The marker is appended to the analysis visual description so anyone
        reading the record can see that data was lost. Applying this twice
        does not append the marker twice.
        """
        if self.analysis is None:
            analysis = CrystalAnalysis(visual_description=marker)
        else:
            description = self.analysis.visual_description
            if not description:
                text = marker
            elif marker in description:
                text = description
            else:
                text = f"{description} {marker}"
            analysis = self.analysis.model_copy(update={"visual_description": text})

        return self.model_copy(update={"generated_image_url": None, "analysis": analysis})

    def with_shipping_details(self, details: ShippingDetails) -> "CustomerRecord":
        return self.model_copy(update={"shipping_details": details})

    def preserving_created_at(self, created_at: int) -> "CustomerRecord":
        """Return this record carrying an already stored creation time (self if unchanged)."""
        if created_at == self.created_at:
            return self
        return self.model_copy(update={"created_at": created_at})
