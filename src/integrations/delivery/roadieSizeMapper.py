"""
Roadie vehicle size mapping.

Roadie prices by one of five size categories. Bag and box counts are
mapped to the smallest category that fits:

- SMALL: 1-2 bags, no boxes (shoebox)
- MEDIUM: 3-5 bags or 1-2 boxes (front seat)
- LARGE: 6-10 bags or 3-5 boxes (back seat)
- XLARGE: 11-20 bags or 6-10 boxes (hatchback)
- HUGE: 11+ boxes (pickup truck bed)
"""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass
from typing import Any, Optional

MAX_ITEMS = 30
MAX_WEIGHT_LBS = 250

BAG_VALUE_DOLLARS = 30
BOX_VALUE_DOLLARS = 40
MIN_DECLARED_VALUE_DOLLARS = 100


class RoadieSize(str, enum.Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    XLARGE = "xlarge"
    HUGE = "huge"


@dataclass(frozen=True)
class RoadieSizeMapping:
    size: RoadieSize
    length: int  # inches
    width: int
    height: int
    weight: int  # pounds
    description: str


_SIZES: dict[RoadieSize, RoadieSizeMapping] = {
    RoadieSize.SMALL: RoadieSizeMapping(RoadieSize.SMALL, 12, 8, 6, 25, "Shoebox size - 1-2 bags"),
    RoadieSize.MEDIUM: RoadieSizeMapping(
        RoadieSize.MEDIUM, 24, 18, 12, 50, "Front seat - 1-2 boxes or 3-5 bags"
    ),
    RoadieSize.LARGE: RoadieSizeMapping(
        RoadieSize.LARGE, 36, 24, 18, 100, "Back seat - 3-5 boxes or 6-10 bags"
    ),
    RoadieSize.XLARGE: RoadieSizeMapping(
        RoadieSize.XLARGE, 48, 36, 24, 150, "Hatchback cargo - 6-10 boxes or 11-20 bags"
    ),
    RoadieSize.HUGE: RoadieSizeMapping(
        RoadieSize.HUGE, 72, 48, 48, 200, "Pickup truck bed - 11+ boxes"
    ),
}


def map_to_roadie_size(bags: int, boxes: int) -> RoadieSizeMapping:
    if boxes >= 11:
        return _SIZES[RoadieSize.HUGE]
    if boxes >= 6 or bags >= 11:
        return _SIZES[RoadieSize.XLARGE]
    if boxes >= 3 or bags >= 6:
        return _SIZES[RoadieSize.LARGE]
    if boxes >= 1 or bags >= 3:
        return _SIZES[RoadieSize.MEDIUM]
    return _SIZES[RoadieSize.SMALL]


def validate_roadie_load(bags: int, boxes: int) -> Optional[str]:
    """Return a reason string if Roadie cannot carry the load, else None."""
    total = bags + boxes
    if total == 0:
        return "At least one bag or box is required"
    if total > MAX_ITEMS:
        return f"Too many items ({total}); maximum is {MAX_ITEMS}"
    if map_to_roadie_size(bags, boxes).weight > MAX_WEIGHT_LBS:
        return f"Estimated weight exceeds {MAX_WEIGHT_LBS} lbs"
    return None


def declared_value(bags: int, boxes: int) -> int:
    """Insured value of the load in dollars."""
    return max(
        MIN_DECLARED_VALUE_DOLLARS,
        bags * BAG_VALUE_DOLLARS + boxes * BOX_VALUE_DOLLARS,
    )


def build_roadie_items(bags: int, boxes: int) -> list[dict[str, Any]]:
    """Single consolidated item entry in Roadie's request format."""
    mapping = map_to_roadie_size(bags, boxes)
    return [
        {
            "description": f"Donation items: {bags} bags, {boxes} boxes",
            "reference_id": f"donation-{int(time.time() * 1000)}",
            "length": mapping.length,
            "width": mapping.width,
            "height": mapping.height,
            "weight": mapping.weight,
            "quantity": 1,
            "value": declared_value(bags, boxes),
        }
    ]
