"""Error taxonomy for the ingestion and stats pipeline.

API-facing errors live in api_errors.py; these are raised by the core and
translated at the service boundary.
"""


class ReaderError(Exception):
    """Base class for all pipeline errors."""


class NotFoundError(ReaderError):
    """A feed, article or other record does not exist."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} not found: {resource_id}")
        self.resource = resource
        self.resource_id = resource_id


class FeedFetchError(ReaderError):
    """Retrieving or parsing a remote feed document failed."""


class NetworkError(FeedFetchError):
    """Remote server unreachable, timed out, or answered with an error status."""


class ParseError(FeedFetchError):
    """Remote document could not be parsed as a syndication feed."""


class DuplicateKeyError(ReaderError):
    """A uniqueness constraint (article guid, feed URL) was violated."""


class PersistenceError(ReaderError):
    """A storage operation failed."""
