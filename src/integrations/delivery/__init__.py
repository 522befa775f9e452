"""
Delivery provider integration package
=====================================

Quote clients for the live last-mile providers plus the shared value
types and HTTP retry helper.

Typical usage::

    from src.integrations.delivery import (
        Location,
        ItemCounts,
        UberDirectClient,
        DeliveryProviderError,
    )
"""

from src.integrations.delivery.base import (
    Address,
    DeliveryClient,
    DeliveryProviderError,
    ItemCounts,
    Location,
    ProviderConfigError,
    ProviderQuote,
)
from src.integrations.delivery.doordashDrive import DoorDashDriveClient
from src.integrations.delivery.roadie import RoadieClient
from src.integrations.delivery.roadieSizeMapper import (
    RoadieSize,
    map_to_roadie_size,
    validate_roadie_load,
)
from src.integrations.delivery.uberDirect import UberDirectClient

__all__ = [
    # base
    "Address",
    "DeliveryClient",
    "DeliveryProviderError",
    "ItemCounts",
    "Location",
    "ProviderConfigError",
    "ProviderQuote",
    # clients
    "DoorDashDriveClient",
    "RoadieClient",
    "UberDirectClient",
    # roadieSizeMapper
    "RoadieSize",
    "map_to_roadie_size",
    "validate_roadie_load",
]
