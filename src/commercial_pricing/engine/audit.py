"""
Audit side-effect interface.

Every state-machine transition calls ``AuditSink.record`` with the entity,
its old and new state and the acting user. Creation and deletion pass
``None`` for the missing side. Storage format is up to the sink; the
in-memory sink is used by tests and the logging sink by the API.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol

from ..config.log import get_logger
from .money import utcnow


@dataclass(frozen=True)
class AuditEntry:
    entity: str
    entity_id: str
    old_state: Optional[str]
    new_state: Optional[str]
    actor: Optional[str] = None
    details: dict = field(default_factory=dict)
    at: datetime = field(default_factory=utcnow)


class AuditSink(Protocol):
    def record(
        self,
        entity: str,
        entity_id: str,
        old_state: Optional[str],
        new_state: Optional[str],
        actor: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        ...


class InMemoryAuditSink:
    """Keeps entries in a list, in call order."""

    def __init__(self):
        self.entries: list[AuditEntry] = []

    def record(self, entity, entity_id, old_state, new_state, actor=None, details=None) -> None:
        self.entries.append(AuditEntry(entity, entity_id, old_state, new_state, actor, dict(details or {})))

    def for_entity(self, entity_id: str) -> list[AuditEntry]:
        return [e for e in self.entries if e.entity_id == entity_id]

    def transitions_for(self, entity_id: str) -> list[tuple]:
        return [(e.old_state, e.new_state) for e in self.for_entity(entity_id)]


class LoggingAuditSink:
    """Writes each entry to the audit logger at INFO."""

    def __init__(self, name: str = 'commercial_pricing.audit'):
        self._logger = get_logger(name)

    def record(self, entity, entity_id, old_state, new_state, actor=None, details=None) -> None:
        message = f"{entity} {entity_id}: {old_state or '-'} -> {new_state or '-'}"
        if actor:
            message += f" by {actor}"
        if details:
            message += " (" + ", ".join(f"{k}={v}" for k, v in details.items()) + ")"
        self._logger.info(message)
