"""Command pipeline models.

- StructuredCommand: what callers submit
- CommandResult: what every command resolves to
- CommandStage: pipeline states, logged on each transition
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CommandStage(str, Enum):
    """States a command moves through.

    Every stage may end the command early by moving to FAILED. BYPASSED is
    used by special services that skip the connection check.
    """

    RECEIVED = "received"
    VALIDATED = "validated"
    IDENTITY_RESOLVED = "identity_resolved"
    CONNECTION_CHECKED = "connection_checked"
    BYPASSED = "bypassed"
    ACTION_RESOLVED = "action_resolved"
    DISPATCHED = "dispatched"
    NORMALIZED = "normalized"
    DONE = "done"
    FAILED = "failed"


class StructuredCommand(BaseModel):
    """A caller's request to perform one action on one service.

    All four fields are required and strictly typed; ``user_id`` is also
    accepted under its wire name ``userId``.
    """

    model_config = ConfigDict(strict=True, populate_by_name=True)

    service: str = Field(min_length=1)
    action: str = Field(min_length=1)
    params: Dict[str, Any]
    user_id: str = Field(alias="userId", min_length=1)

    @field_validator("service", "action", "user_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with the ``userId`` wire name."""
        return self.model_dump(by_alias=True)


class CommandResult(BaseModel):
    """Outcome of a command. ``success`` decides which other fields matter."""

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "CommandResult":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str) -> "CommandResult":
        return cls(success=False, error=error)
