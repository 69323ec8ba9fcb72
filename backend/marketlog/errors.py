from __future__ import annotations


class IngestError(Exception):
    """Base class for failures on the ingestion path."""


class DecodeError(IngestError):
    """Payload is not valid JSON or does not match the record shape."""


class FlattenError(IngestError):
    def __init__(self, instrument: str, message: str) -> None:
        super().__init__(f"{instrument}: {message}")
        self.instrument = instrument


class WriteError(IngestError):
    """The batch was rolled back; none of its rows are visible."""

    def __init__(self, table: str, message: str) -> None:
        super().__init__(f"{table}: {message}")
        self.table = table


class FetchError(IngestError):
    def __init__(
        self, message: str, status_code: int | None = None, body: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
