"""
File ingestion exception hierarchy.

Each stage of the pipeline raises its own error type; the lifecycle
coordinator is the boundary where they are logged and turned into a
terminal stage for the archive.
"""


class IngestError(Exception):
    """Base exception for all ingestion failures."""


class ExtractionError(IngestError):
    """Raised when an archive cannot be unpacked."""


class MalformedContentError(IngestError):
    """Raised for unparsable bulk records or update templates."""


class StoreError(IngestError):
    """Raised when the target store rejects a transaction."""
