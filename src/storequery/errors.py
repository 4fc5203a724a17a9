class StoreQueryError(Exception):
    """Base class for every error raised by storequery."""


class FramingError(StoreQueryError):
    """A bulk action could not be framed into NDJSON lines."""


class DecodeError(StoreQueryError):
    """A response payload did not have the expected shape."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Instantiate a DecodeError, optionally naming the offending field."""
        super().__init__(message)
        self.field: str | None = field
