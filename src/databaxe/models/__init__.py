"""Record types used by databaxe."""

from databaxe.models._base import DataBaxeBaseModel
from databaxe.models.cache import CacheEntry, Snapshot
from databaxe.models.source import DataSource, DataSourceSpec, Transform
from databaxe.models.transport import TransportResponse

__all__ = [
    "CacheEntry",
    "DataBaxeBaseModel",
    "DataSource",
    "DataSourceSpec",
    "Snapshot",
    "Transform",
    "TransportResponse",
]
