"""Policy gate and requirement values."""

from rolegate.gate.policy import PolicyGate
from rolegate.gate.requirement import Requirement, RequirementKind, RequirementLike


__all__ = [
    "PolicyGate",
    "Requirement",
    "RequirementKind",
    "RequirementLike",
]
