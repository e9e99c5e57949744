"""
FedMCP Artifact Model

The unit of exchange: a versioned, typed record with an arbitrary JSON body.
Artifacts are immutable value objects; an update is a new Artifact with an
incremented version and a fresh signature.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

from .canonicalization import MAX_NESTING_DEPTH, canonicalize
from .errors import ArtifactValidationError, CanonicalizationError, ValidationCode
from .hashing import sha256_hex

# jsonBody cap, measured on its canonical serialization
MAX_BODY_BYTES = 1024 * 1024

RFC3339_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class ArtifactType(str, Enum):
    """Closed enumeration of artifact types."""
    SSP_FRAGMENT = "ssp_fragment"
    POAM_TEMPLATE = "poam_template"
    AGENT_RECIPE = "agent_recipe"
    BASELINE_MODULE = "baseline_module"
    AUDIT_SCRIPT = "audit_script"


ARTIFACT_TYPES = frozenset(t.value for t in ArtifactType)


def utc_now_rfc3339() -> str:
    """Current UTC time as a second-precision RFC 3339 string."""
    return datetime.now(timezone.utc).strftime(RFC3339_FORMAT)


@dataclass(frozen=True)
class Artifact:
    """
    FedMCP artifact.

    Fields:
    - id: globally unique identifier (UUID4)
    - type: one of ArtifactType
    - version: positive integer, monotonic per lineage
    - workspace_id: owning tenant identifier (UUID4)
    - created_at: RFC 3339 UTC string (kept as a string because it is part
      of the byte-exact canonical form)
    - json_body: JSON-compatible mapping, at most 1 MiB canonical

    json_body is frozen on construction: mappings become read-only views
    and lists become tuples. to_dict() hands back plain mutable copies.
    Equal artifacts hash alike, so artifacts can be set members and dict
    keys.

    Raises:
        CanonicalizationError: if json_body nests deeper than
            MAX_NESTING_DEPTH levels
    """
    id: uuid.UUID
    type: str
    version: int
    workspace_id: uuid.UUID
    created_at: str
    json_body: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "type", _type_value(self.type))
        if isinstance(self.json_body, Mapping):
            object.__setattr__(self, "json_body", _freeze(self.json_body, 1))

    def __hash__(self) -> int:
        return hash((self.id, self.type, self.version, self.workspace_id, self.created_at))

    def __copy__(self) -> "Artifact":
        return self

    def __deepcopy__(self, memo) -> "Artifact":
        return self

    @classmethod
    def create(
        cls,
        artifact_type: Union[ArtifactType, str],
        workspace_id: uuid.UUID,
        json_body: Mapping[str, Any],
    ) -> "Artifact":
        """Create a version 1 artifact with a fresh id and the current time."""
        return cls(
            id=uuid.uuid4(),
            type=artifact_type,
            version=1,
            workspace_id=workspace_id,
            created_at=utc_now_rfc3339(),
            json_body=json_body,
        )

    def next_version(self, json_body: Optional[Mapping[str, Any]] = None) -> "Artifact":
        """
        Return the successor of this artifact in its lineage.

        The id and workspace carry over; version is incremented and the
        timestamp refreshed. The body is replaced when one is given.
        """
        return Artifact(
            id=self.id,
            type=self.type,
            version=self.version + 1,
            workspace_id=self.workspace_id,
            created_at=utc_now_rfc3339(),
            json_body=self.json_body if json_body is None else json_body,
        )

    def validate(self) -> None:
        """
        Check the artifact invariants.

        Re-serializes json_body to measure its size, so this is not free.

        Raises:
            ArtifactValidationError: with the first failing ValidationCode
            CanonicalizationError: if json_body is not JSON-serializable
        """
        if not isinstance(self.id, uuid.UUID) or self.id.int == 0:
            raise ArtifactValidationError(
                ValidationCode.EMPTY_IDENTIFIER, "artifact ID cannot be nil"
            )
        if not isinstance(self.workspace_id, uuid.UUID) or self.workspace_id.int == 0:
            raise ArtifactValidationError(
                ValidationCode.EMPTY_WORKSPACE, "workspace ID cannot be nil"
            )
        if isinstance(self.version, bool) or not isinstance(self.version, int) or self.version < 1:
            raise ArtifactValidationError(
                ValidationCode.INVALID_VERSION, f"version must be >= 1, got {self.version!r}"
            )
        if not self.type:
            raise ArtifactValidationError(ValidationCode.EMPTY_TYPE, "type cannot be empty")
        if self.type not in ARTIFACT_TYPES:
            raise ArtifactValidationError(
                ValidationCode.UNKNOWN_TYPE,
                f"Invalid type '{self.type}': must be one of {sorted(ARTIFACT_TYPES)}",
            )
        if not isinstance(self.json_body, Mapping) or len(self.json_body) == 0:
            raise ArtifactValidationError(ValidationCode.EMPTY_BODY, "jsonBody cannot be empty")

        size = len(canonicalize(self.json_body))
        if size > MAX_BODY_BYTES:
            raise ArtifactValidationError(
                ValidationCode.BODY_TOO_LARGE,
                f"jsonBody is {size} bytes, exceeds {MAX_BODY_BYTES} byte limit",
            )

    def is_valid(self) -> bool:
        try:
            self.validate()
        except ValueError:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the exchange shape {id, type, version, workspaceId, createdAt, jsonBody}."""
        return {
            "id": str(self.id),
            "type": self.type,
            "version": self.version,
            "workspaceId": str(self.workspace_id),
            "createdAt": self.created_at,
            "jsonBody": _thaw(self.json_body),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Artifact":
        """Create an artifact from its exchange shape."""
        required = ["id", "type", "version", "workspaceId", "createdAt", "jsonBody"]
        missing = [f for f in required if f not in data]
        if missing:
            raise ArtifactValidationError(
                ValidationCode.MALFORMED, f"Missing required fields: {missing}"
            )

        try:
            artifact_id = uuid.UUID(str(data["id"]))
            workspace_id = uuid.UUID(str(data["workspaceId"]))
        except ValueError as e:
            raise ArtifactValidationError(
                ValidationCode.MALFORMED, f"Invalid UUID: {e}"
            ) from e

        return cls(
            id=artifact_id,
            type=data["type"],
            version=data["version"],
            workspace_id=workspace_id,
            created_at=data["createdAt"],
            json_body=data["jsonBody"],
        )

    def canonicalize(self) -> bytes:
        """Canonical JSON bytes of the whole artifact, ready for hashing or signing."""
        return canonicalize(self.to_dict())

    def hash(self) -> str:
        """Lowercase hex SHA-256 of the canonical form."""
        return sha256_hex(self.canonicalize())


def create_artifact(
    artifact_type: Union[ArtifactType, str],
    workspace_id: uuid.UUID,
    json_body: Mapping[str, Any],
) -> Artifact:
    """
    Factory function to create an artifact.

    Args:
        artifact_type: One of ArtifactType (e.g., "agent_recipe")
        workspace_id: Owning tenant identifier
        json_body: Artifact content

    Returns:
        Artifact with a fresh id, version 1 and the current UTC timestamp
    """
    return Artifact.create(artifact_type, workspace_id, json_body)


def _type_value(value: Any) -> Any:
    if isinstance(value, ArtifactType):
        return value.value
    return value


def _freeze(value: Any, depth: int) -> Any:
    if isinstance(value, Mapping):
        if depth >= MAX_NESTING_DEPTH:
            raise CanonicalizationError(f"jsonBody nests deeper than {MAX_NESTING_DEPTH} levels")
        frozen = {}
        for key, item in value.items():
            frozen[key] = _freeze(item, depth + 1)
        return MappingProxyType(frozen)
    if isinstance(value, (list, tuple)):
        if depth >= MAX_NESTING_DEPTH:
            raise CanonicalizationError(f"jsonBody nests deeper than {MAX_NESTING_DEPTH} levels")
        return tuple(_freeze(item, depth + 1) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        thawed = {}
        for key, item in value.items():
            thawed[key] = _thaw(item)
        return thawed
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value
