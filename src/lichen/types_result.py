from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List

from .types_buildinfo import BuildInfo
from .types_module import Module


class Decision(enum.Enum):
    ALLOWED = 1
    NOT_ALLOWED_UNRESOLVABLE_LICENSE = 2
    NOT_ALLOWED_LICENSE_NOT_PERMITTED = 3

    @property
    def token(self) -> str:
        """Machine-readable token used in serialized scan output."""

        match self:
            case Decision.ALLOWED:
                return "allowed"
            case Decision.NOT_ALLOWED_UNRESOLVABLE_LICENSE:
                return "unresolvable-license"
            case Decision.NOT_ALLOWED_LICENSE_NOT_PERMITTED:
                return "licenses-not-allowed"
            case _:
                raise AssertionError(f"unrecognised decision: {self!r}")


@dataclass
class EvaluatedModule:
    module: Module
    decision: Decision
    not_permitted: set[str] = field(default_factory=set)
    used_by: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        # not_permitted is populated exactly when licenses were rejected
        rejected = self.decision is Decision.NOT_ALLOWED_LICENSE_NOT_PERMITTED
        if rejected != bool(self.not_permitted):
            raise AssertionError(
                f"{self.module.reference}: not_permitted={sorted(self.not_permitted)} "
                f"inconsistent with decision {self.decision.name}"
            )

    @property
    def path(self) -> str:
        return self.module.path

    @property
    def version(self) -> str:
        return self.module.version

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOWED

    def explain_decision(self) -> str:
        match self.decision:
            case Decision.ALLOWED:
                return "allowed"
            case Decision.NOT_ALLOWED_UNRESOLVABLE_LICENSE:
                return "not allowed - unresolvable license"
            case Decision.NOT_ALLOWED_LICENSE_NOT_PERMITTED:
                return f"not allowed - non-permitted licenses: {', '.join(sorted(self.not_permitted))}"
            case _:
                raise AssertionError(f"unrecognised decision: {self.decision!r}")


@dataclass
class Summary:
    binaries: List[BuildInfo]
    modules: List[EvaluatedModule] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(module.allowed for module in self.modules)

    @property
    def failures(self) -> list[EvaluatedModule]:
        return [module for module in self.modules if not module.allowed]
