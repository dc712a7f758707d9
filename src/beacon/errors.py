"""Exception hierarchy shared by the beacon responder, queries and helpers."""

from __future__ import annotations


class MdnsError(Exception):
    """Base class for every error raised by beacon."""


class DecodeError(MdnsError):
    """
    Brief: A packet could not be decoded as a DNS message.

    Inputs:
    - message: description (usually the underlying dnslib error)

    Outputs:
    - Exception instance
    """

    pass


class SendError(MdnsError):
    """
    Brief: An outbound packet could not be written to the transport.

    Inputs:
    - message: description

    Outputs:
    - Exception instance
    """

    pass


class QueryTimeout(MdnsError):
    """No answers were delivered to a query before the timeout elapsed."""


class QueryStopped(MdnsError):
    """The query was stopped while (or before) waiting for answers."""


class ResolveError(MdnsError):
    """A link-local lookup produced no usable result."""


class ServiceStateError(MdnsError):
    """A service setting was changed after the service was started."""


class ConfigError(MdnsError):
    """Configuration could not be read or validated."""
