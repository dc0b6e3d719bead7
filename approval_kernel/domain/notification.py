"""
Notification intents (``approval_kernel.domain.notification``).

Responsibility
--------------
The value shape of a notification the engine wants delivered, the
emitter protocol delivery sinks implement, and an in-memory emitter for
tests and embedding applications.  Delivery transport is external; the
engine only produces intents after its transaction commits.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Protocol
from uuid import UUID


class NotificationType(str, Enum):
    APPROVAL_REQUESTED = "APPROVAL_REQUESTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CONTRACT_UPDATED = "CONTRACT_UPDATED"
    DEADLINE_APPROACHING = "DEADLINE_APPROACHING"
    WORKFLOW_HALTED = "WORKFLOW_HALTED"


@dataclass(frozen=True)
class NotificationIntent:
    """One notification for one recipient."""

    user_id: UUID
    type: NotificationType
    title: str
    message: str
    contract_id: UUID | None = None
    action_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "contract_id": str(self.contract_id) if self.contract_id else None,
            "action_url": self.action_url,
        }


@dataclass(frozen=True)
class NotificationRecord:
    """A stored notification as seen in a user's inbox."""

    id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    read: bool
    created_at: datetime
    contract_id: UUID | None = None
    action_url: str | None = None
    read_at: datetime | None = None


class NotificationEmitter(Protocol):
    """Delivery sink.  ``emit`` may raise; the dispatcher reports failures."""

    def emit(self, intent: NotificationIntent) -> None:
        ...


class CollectingEmitter:
    """Keeps every emitted intent in memory, in emission order."""

    def __init__(self) -> None:
        self.intents: list[NotificationIntent] = []

    def emit(self, intent: NotificationIntent) -> None:
        self.intents.append(intent)

    def for_user(self, user_id: UUID) -> list[NotificationIntent]:
        return [i for i in self.intents if i.user_id == user_id]

    def clear(self) -> None:
        self.intents.clear()


def dedupe_intents(
    intents: Iterable[NotificationIntent],
) -> tuple[NotificationIntent, ...]:
    """Keep the first intent per (user_id, type, contract_id), preserving order."""
    seen: set[tuple[UUID, NotificationType, UUID | None]] = set()
    unique: list[NotificationIntent] = []
    for intent in intents:
        key = (intent.user_id, intent.type, intent.contract_id)
        if key in seen:
            continue
        seen.add(key)
        unique.append(intent)
    return tuple(unique)


def contract_url(contract_id: UUID) -> str:
    return f"/contracts/{contract_id}"
