"""Errors raised while talking to a CSW catalogue.

Exception reports sent back by a catalogue are not raised; they are returned
as ``models.ProtocolError`` values so that callers can show the message
without having to catch anything.
"""

import typing


class CatalogClientError(Exception):
    """Base class for all csw_catalog errors."""

    _RESERVED_ATTRS = frozenset({"message", "context", "args"})

    def __init__(self, message: str, **context: typing.Any) -> None:
        self.message = message
        self.context = context
        for key, value in context.items():
            if key not in self._RESERVED_ATTRS:
                setattr(self, key, value)
        super().__init__(message)

    def to_dict(self) -> typing.Dict[str, typing.Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
        }


class TransportError(CatalogClientError):
    """The HTTP request failed or the remote replied with an HTTP error status.

    Context attributes:
    - url: requested URL
    - http_status_code: status code, when a response was received
    - http_status_reason: reason phrase, when a response was received
    """


class CrsResolutionError(CatalogClientError):
    """A bounding box CRS could not be mapped to a numeric EPSG code.

    Context attributes:
    - crs: the raw CRS value reported by the catalogue
    """


class MalformedResponseError(CatalogClientError):
    """The response body could not be decoded as XML."""
