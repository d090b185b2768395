"""Error taxonomy shared by ingestion, retrieval and answer generation.

Every error carries an HTTP-style ``status_code`` so outer surfaces (Lambda
handlers, CLI) can report a structured error without knowing the subtype.
"""

from __future__ import annotations

from typing import Any


class FundRagError(Exception):
    """Base class for all fundrag errors."""

    status_code: int = 500
    label: str = "Internal error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.label, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(FundRagError):
    """Malformed or incomplete request. Raised before any I/O."""

    status_code = 400
    label = "Invalid request"


class ConfigurationError(FundRagError):
    """Missing credential or unusable setting, detected at construction."""

    label = "Configuration error"


class EmbeddingProviderError(FundRagError):
    """Upstream embedding call failed or returned no usable vector."""

    label = "Embedding failed"


class ChatProviderError(FundRagError):
    """Upstream chat-completion call failed."""

    label = "Chat completion failed"


class GroundingError(FundRagError):
    """Model output did not cite the supplied evidence."""

    label = "Ungrounded answer"


class TransactionError(FundRagError):
    """Storage write failed; the enclosing transaction was rolled back."""

    label = "Storage failure"


class StorageReadError(FundRagError):
    """A storage read failed (lost connection, statement timeout, ...)."""

    label = "Storage failure"


class NotFoundError(FundRagError):
    """A referenced document or fund does not exist."""

    status_code = 404
    label = "Not found"


class TableMissingError(FundRagError):
    """A backing table is not provisioned in this deployment."""

    label = "Data source unavailable"

    def __init__(self, table: str):
        super().__init__(f"table '{table}' does not exist")
        self.table = table
