"""Result envelopes returned by services and rendered by the CLI."""

import json
from dataclasses import dataclass, field
from typing import Any

from .errors import AggregateExecutionError, ExtDeployError


@dataclass(slots=True)
class CommandResult:
    """Common command/service response payload."""

    success: bool
    code: str = "ok"
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_error(cls, err: ExtDeployError) -> "CommandResult":
        """Failure envelope for an error; aggregate failures are listed per target."""
        data: dict[str, Any] = {}
        if isinstance(err, AggregateExecutionError):
            data["failures"] = [
                {
                    "target": str(getattr(target, "database", target)),
                    "code": failure.code,
                    "message": str(failure),
                }
                for target, failure in err.failures
            ]
        return cls(success=False, code=err.code, message=str(err), data=data)

    def as_json_dict(self) -> dict[str, Any]:
        """Return a stable machine-readable structure."""
        return {
            "success": self.success,
            "code": self.code,
            "message": self.message,
            "data": self.data,
        }

    def to_json(self) -> str:
        return json.dumps(self.as_json_dict(), default=str)
