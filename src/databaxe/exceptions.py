"""Custom exception hierarchy for databaxe."""

from __future__ import annotations


class DataBaxeError(Exception):
    """Base exception for all databaxe errors."""


class DataBaxeConfigError(DataBaxeError):
    """Invalid or missing configuration."""


class UnknownDataSourceError(DataBaxeError):
    """A method referenced a data source id that is not registered."""

    def __init__(self, data_source_id: str) -> None:
        self.data_source_id = data_source_id
        super().__init__(f"data source {data_source_id!r} is not registered")


class DuplicateRegistrationError(DataBaxeError):
    """A data source id was registered twice on the same instance."""

    def __init__(self, data_source_id: str) -> None:
        self.data_source_id = data_source_id
        super().__init__(f"data source {data_source_id!r} is already registered")


class InvalidMethodError(DataBaxeError):
    """HTTP verb of the wrong class for the call.

    ``get`` only accepts read verbs, ``save`` only mutating ones.
    """

    def __init__(self, message: str, *, method: str = "") -> None:
        self.method = method
        super().__init__(message)


class TransportFailureError(DataBaxeError):
    """Network or backend failure reported by the transport.

    The original exception (if any) is kept on ``cause`` and chained.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        self.cause = cause
        super().__init__(message)
