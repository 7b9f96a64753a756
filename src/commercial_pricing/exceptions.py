"""
Exception hierarchy for the commercial pricing engine.

Guard failures subclass ValueError and unknown-record lookups subclass
LookupError, so callers that already catch the builtin types keep working.
"""
from typing import Iterable, Optional


class CommercialError(Exception):
    """Base class for all commercial pricing errors."""


class InvalidTransitionError(CommercialError, ValueError):
    """A state-machine guard rejected a transition. No state was changed."""

    def __init__(self, message: str, reasons: Optional[Iterable[str]] = None):
        self.reasons = list(reasons or [])
        if self.reasons:
            message = f"{message}: {'; '.join(self.reasons)}"
        super().__init__(message)


class RecordNotFoundError(CommercialError, LookupError):
    """A referenced record does not exist in the store."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} '{record_id}' not found")


class LogicDefinitionError(CommercialError, ValueError):
    """A rule or policy logic payload could not be parsed."""

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))
