from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List

from .errors import InvalidRequirementError
from .models import Feature, Requirement, TeamName

ROUNDING_DIGITS = 9


@dataclass(frozen=True)
class ResolvedRequirement:
    team: TeamName
    duration_weeks: int
    parallel: int

    @property
    def reserves_capacity(self) -> bool:
        return self.duration_weeks > 0


def validate_overhead_factor(overhead_factor: object) -> float:
    if isinstance(overhead_factor, bool) or not isinstance(overhead_factor, (int, float)):
        raise InvalidRequirementError(f"overhead_factor must be a number, got {overhead_factor!r}")
    value = float(overhead_factor)
    if math.isnan(value) or math.isinf(value) or value < 1.0:
        raise InvalidRequirementError(f"overhead_factor must be a finite number >= 1, got {overhead_factor!r}")
    return value


def validate_requirement(requirement: Requirement, *, feature_id: str, team: str) -> None:
    weeks = requirement.weeks
    parallel = requirement.parallel
    if isinstance(weeks, bool) or not isinstance(weeks, (int, float)) or math.isnan(weeks) or math.isinf(weeks):
        raise InvalidRequirementError(f"weeks must be a finite number, got {weeks!r}", feature_id=feature_id, team=team)
    if weeks < 0:
        raise InvalidRequirementError(f"weeks must not be negative, got {weeks!r}", feature_id=feature_id, team=team)
    if isinstance(parallel, float) and parallel.is_integer():
        parallel = int(parallel)
    if isinstance(parallel, bool) or not isinstance(parallel, int):
        raise InvalidRequirementError(
            f"parallel must be a whole number, got {parallel!r}", feature_id=feature_id, team=team
        )
    if parallel <= 0:
        raise InvalidRequirementError(f"parallel must be >= 1, got {parallel!r}", feature_id=feature_id, team=team)


def duration_weeks(requirement: Requirement, overhead_factor: float) -> int:
    """Wall-clock weeks: ceil(weeks * overhead / parallel).

    The quotient is rounded to ``ROUNDING_DIGITS`` places first so float noise
    such as ``10 * 1.1`` does not add a week. Any positive effort takes at
    least one week.
    """
    if requirement.weeks <= 0:
        return 0
    raw = requirement.weeks * overhead_factor / int(requirement.parallel)
    return max(1, math.ceil(round(raw, ROUNDING_DIGITS)))


def resolve_feature(feature: Feature, overhead_factor: float) -> List[ResolvedRequirement]:
    resolved: List[ResolvedRequirement] = []
    for team, requirement in feature.requirements.items():
        resolved.append(
            ResolvedRequirement(
                team=team,
                duration_weeks=duration_weeks(requirement, overhead_factor),
                parallel=int(requirement.parallel),
            )
        )
    return resolved


def feature_duration(resolved: List[ResolvedRequirement]) -> int:
    """Teams work side by side, so the longest team part decides the length."""
    return max((item.duration_weeks for item in resolved), default=0)
