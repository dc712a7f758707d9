"""beacon: multicast DNS responder and DNS-SD service discovery."""

from .config.config_parser import load_config, parse_config_file
from .config.logging_config import init_logging
from .errors import (
    ConfigError,
    DecodeError,
    MdnsError,
    QueryStopped,
    QueryTimeout,
    ResolveError,
    SendError,
    ServiceStateError,
)
from .names import Name
from .query import BackgroundQuery, Query
from .records import TYPE_A, TYPE_AAAA, TYPE_ANY, TYPE_PTR, TYPE_SRV, TYPE_TXT
from .resolver import Resolver
from .responder import Responder
from .service import Service

__all__ = [
    "BackgroundQuery",
    "ConfigError",
    "DecodeError",
    "MdnsError",
    "Name",
    "Query",
    "QueryStopped",
    "QueryTimeout",
    "ResolveError",
    "Resolver",
    "Responder",
    "SendError",
    "Service",
    "ServiceStateError",
    "TYPE_A",
    "TYPE_AAAA",
    "TYPE_ANY",
    "TYPE_PTR",
    "TYPE_SRV",
    "TYPE_TXT",
    "init_logging",
    "load_config",
    "parse_config_file",
]
