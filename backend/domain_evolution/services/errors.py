"""Exceptions raised by the evolution services and translated to HTTP statuses by the routes."""

from __future__ import annotations

from typing import Sequence


class NotFoundError(LookupError):
    """A captured turn, proposal, domain, record, or cluster index does not exist."""


class InvalidTransitionError(ValueError):
    def __init__(self, proposal_id: int, current_status: str, requested_status: str) -> None:
        self.proposal_id = proposal_id
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Cannot move proposal {proposal_id} to '{requested_status}': current status is '{current_status}'"
        )


class DomainConflictError(ValueError):
    """A domain name or table name is already taken."""


class InvalidIdentifierError(ValueError):
    """A domain or field name does not survive allow-list normalisation."""


class SchemaSynthesisError(ValueError):
    """Model output could not be parsed into a schema that honours the output contract."""


class RecordValidationError(ValueError):
    def __init__(self, domain_name: str, errors: Sequence[str]) -> None:
        self.domain_name = domain_name
        self.errors = list(errors)
        super().__init__(f"Validation failed for '{domain_name}': {'; '.join(self.errors)}")


class EmbeddingDimensionError(RuntimeError):
    """Two vectors of different length were compared; the embedding model has changed."""
