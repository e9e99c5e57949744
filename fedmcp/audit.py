"""
FedMCP Audit Events

Immutable records that an action happened to an artifact, produced for an
external audit-log collaborator. An event may carry a signature envelope
for non-repudiation; this package neither stores nor transmits events.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from .artifact import Artifact, utc_now_rfc3339


class AuditAction(str, Enum):
    """Actions recorded in the audit log."""
    CREATE = "create"
    UPDATE = "update"
    DEPLOY = "deploy"
    DELETE = "delete"


@dataclass(frozen=True)
class AuditEvent:
    """One audit log entry."""
    event_id: uuid.UUID
    artifact_id: uuid.UUID
    action: AuditAction
    actor: str
    timestamp: str
    jws: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Exchange shape; jws is omitted when absent."""
        data = {
            "eventId": str(self.event_id),
            "artifactId": str(self.artifact_id),
            "action": self.action.value,
            "actor": self.actor,
            "timestamp": self.timestamp,
        }
        if self.jws:
            data["jws"] = self.jws
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEvent":
        required = ["eventId", "artifactId", "action", "actor", "timestamp"]
        missing = [f for f in required if f not in data]
        if missing:
            raise ValueError(f"Missing required fields: {missing}")

        return cls(
            event_id=uuid.UUID(data["eventId"]),
            artifact_id=uuid.UUID(data["artifactId"]),
            action=AuditAction(data["action"]),
            actor=data["actor"],
            timestamp=data["timestamp"],
            jws=data.get("jws") or None,
        )


def create_audit_event(
    artifact_id: uuid.UUID,
    action: Union[AuditAction, str],
    actor: str,
    jws: Optional[str] = None,
) -> AuditEvent:
    """
    Factory function to create an audit event.

    Args:
        artifact_id: Artifact the action applies to
        action: One of AuditAction
        actor: Who performed the action
        jws: Optional signature envelope

    Returns:
        AuditEvent with a fresh event id and the current UTC timestamp
    """
    if not actor:
        raise ValueError("actor must not be empty")

    return AuditEvent(
        event_id=uuid.uuid4(),
        artifact_id=artifact_id,
        action=AuditAction(action),
        actor=actor,
        timestamp=utc_now_rfc3339(),
        jws=jws,
    )


def signed_audit_event(
    artifact: Artifact,
    action: Union[AuditAction, str],
    actor: str,
    signer,
) -> AuditEvent:
    """Create an audit event carrying signer.sign(artifact) as its jws."""
    envelope = signer.sign(artifact)
    return create_audit_event(artifact.id, action, actor, jws=envelope)
