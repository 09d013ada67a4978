from revenue.models.attribution import ItemAttribution
from revenue.models.config import CollectionRevenueConfig
from revenue.models.event import RevenueEvent
from revenue.models.share import IndividualShare

__all__ = [
    "CollectionRevenueConfig",
    "IndividualShare",
    "ItemAttribution",
    "RevenueEvent",
]
