"""Error taxonomy for deployment composition.

Three kinds of failure can stop a composition pass:

- ``ValidationError``: one or more parameters are missing or malformed. All
  violations are collected and reported together.
- ``InvariantViolation``: a composer was called with handles or values that can
  only come from a programming mistake (e.g. a role from the unselected
  compute branch).
- ``ProvisioningError``: the provisioning backend (CDK CLI / CloudFormation)
  failed. It is propagated as-is, never retried.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple


class CompositionError(Exception):
    """Base class for every error raised while composing a deployment."""


@dataclass(frozen=True)
class Violation:
    """A single violated parameter constraint."""
    parameter: str
    rule: str
    message: str

    def __str__(self) -> str:
        return f"{self.parameter}: {self.message} [{self.rule}]"


class ValidationError(CompositionError):
    """Aggregated parameter validation failure."""

    def __init__(self, violations: Iterable[Violation]):
        self.violations: Tuple[Violation, ...] = tuple(violations)
        lines = "\n".join(f"  - {v}" for v in self.violations)
        super().__init__(f"{len(self.violations)} parameter constraint(s) violated:\n{lines}")

    @property
    def parameters(self) -> Tuple[str, ...]:
        return tuple(v.parameter for v in self.violations)


class InvariantViolation(CompositionError):
    """Construction misuse between composers."""


class ProvisioningError(CompositionError):
    """Failure reported by the provisioning backend."""

    def __init__(self, message: str, *, returncode: Optional[int] = None, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)
