from __future__ import annotations

from typing import Optional


class PlanningInputError(ValueError):
    """Base class for input problems detected before scheduling starts."""


class ConfigurationError(PlanningInputError):
    pass


class InvalidRequirementError(PlanningInputError):
    def __init__(self, message: str, *, feature_id: Optional[str] = None, team: Optional[str] = None) -> None:
        prefix = ""
        if feature_id is not None:
            prefix = f"feature {feature_id}"
            if team is not None:
                prefix += f" / team {team}"
            prefix += ": "
        super().__init__(prefix + message)
        self.feature_id = feature_id
        self.team = team


class UnschedulableFeatureError(RuntimeError):
    def __init__(self, feature_id: str, reason: str) -> None:
        super().__init__(f"Feature {feature_id} unschedulable: {reason}")
        self.feature_id = feature_id
        self.reason = reason


class SchedulingCancelledError(RuntimeError):
    pass
