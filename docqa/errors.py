"""Exception types shared across ingestion, retrieval and streaming."""
from __future__ import annotations

from typing import Optional


class DocQAError(Exception):
    """Base class for all docqa failures."""


class ConfigError(DocQAError):
    """Configuration could not be loaded or failed validation."""


class EmbeddingFailure(DocQAError):
    """The embedding provider returned no usable vector."""


class EmptyIndex(DocQAError):
    """A similarity query was issued against an index with no vectors."""


class UnsupportedDocument(DocQAError):
    """A corpus file could not be parsed into text."""


class UpstreamHTTPFailure(DocQAError):
    """A provider answered with a non-success HTTP status."""

    def __init__(self, status_code: int, reason: str = "", body: Optional[str] = None) -> None:
        self.status_code = status_code
        self.reason = reason
        self.body = body
        super().__init__(f"Upstream returned {status_code} {reason}".rstrip())
