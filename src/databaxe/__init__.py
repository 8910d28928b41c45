"""databaxe - Reactive, cached and deduplicated async data access."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("databaxe")
except PackageNotFoundError:
    __version__ = "0+local"
from databaxe._hashing import fingerprint
from databaxe._transport import AiohttpTransport, Transport
from databaxe._url import interpolate
from databaxe.cache import CacheStore
from databaxe.client import DataBaxe
from databaxe.config import DataBaxeConfig
from databaxe.engine import Engine, get_default_engine, reset_default_engine
from databaxe.exceptions import (
    DataBaxeConfigError,
    DataBaxeError,
    DuplicateRegistrationError,
    InvalidMethodError,
    TransportFailureError,
    UnknownDataSourceError,
)
from databaxe.models import CacheEntry, DataSource, DataSourceSpec, Snapshot, TransportResponse
from databaxe.registry import SharedEndpoint, Subscriber
from databaxe.stores import MemoryStore, Store

__all__ = [
    "__version__",
    "AiohttpTransport",
    "CacheEntry",
    "CacheStore",
    "DataBaxe",
    "DataBaxeConfig",
    "DataBaxeConfigError",
    "DataBaxeError",
    "DataSource",
    "DataSourceSpec",
    "DuplicateRegistrationError",
    "Engine",
    "InvalidMethodError",
    "MemoryStore",
    "SharedEndpoint",
    "Snapshot",
    "Store",
    "Subscriber",
    "Transport",
    "TransportFailureError",
    "TransportResponse",
    "UnknownDataSourceError",
    "fingerprint",
    "get_default_engine",
    "interpolate",
    "reset_default_engine",
]
