from __future__ import annotations

import bisect
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import ConfigurationError


TeamName = str
Breakpoint = Tuple[int, int]

DEFAULT_HORIZON_WEEKS = 52
MAX_HORIZON_WEEKS = 1000


def _as_whole_number(value: object, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{label} must be a number, got {value!r}")
    if isinstance(value, float) and (math.isnan(value) or not value.is_integer()):
        raise ConfigurationError(f"{label} must be a whole number, got {value!r}")
    number = int(value)
    if number < 0:
        raise ConfigurationError(f"{label} must not be negative, got {value!r}")
    return number


@dataclass(frozen=True)
class CapacitySeries:
    """Step function of team headcount keyed by week.

    ``breakpoints`` is sorted by week with at most one entry per week. The size
    at week ``w`` is the size of the latest breakpoint at or before ``w``, and
    zero before the first breakpoint.
    """

    breakpoints: Tuple[Breakpoint, ...]

    def size_at(self, week: int) -> int:
        weeks = [bp_week for bp_week, _ in self.breakpoints]
        idx = bisect.bisect_right(weeks, week) - 1
        if idx < 0:
            return 0
        return self.breakpoints[idx][1]

    def forward_fill(self, horizon: int) -> List[int]:
        sizes: List[int] = []
        current = 0
        cursor = 0
        for week in range(horizon):
            while cursor < len(self.breakpoints) and self.breakpoints[cursor][0] <= week:
                current = self.breakpoints[cursor][1]
                cursor += 1
            sizes.append(current)
        return sizes

    @property
    def base_size(self) -> int:
        return self.size_at(0)

    def peak_size(self) -> int:
        return max((size for _, size in self.breakpoints), default=0)


def _breakpoints_from_entries(entries: Sequence[object], label: str) -> List[Breakpoint]:
    if all(isinstance(item, (int, float)) and not isinstance(item, bool) for item in entries):
        # Per-week sizes starting at week 0; only the changes are kept.
        points: List[Breakpoint] = []
        for week, raw_size in enumerate(entries):
            size = _as_whole_number(raw_size, f"{label} size at week {week}")
            if points and points[-1][1] == size:
                continue
            points.append((week, size))
        return points
    points = []
    for entry in entries:
        if isinstance(entry, Mapping):
            if "week" not in entry or "size" not in entry:
                raise ConfigurationError(f"{label} breakpoints need 'week' and 'size': {dict(entry)!r}")
            raw_week, raw_size = entry["week"], entry["size"]
        elif isinstance(entry, Sequence) and not isinstance(entry, str) and len(entry) == 2:
            raw_week, raw_size = entry
        else:
            raise ConfigurationError(f"unsupported {label} breakpoint: {entry!r}")
        week = _as_whole_number(raw_week, f"{label} week")
        size = _as_whole_number(raw_size, f"{label} size")
        points.append((week, size))
    return points


def normalize_capacity(value: object, team: Optional[str] = None) -> CapacitySeries:
    """Coerce any accepted headcount representation into a CapacitySeries.

    Accepts a flat number, a list of per-week sizes, a list of ``{"week",
    "size"}`` mappings, a list of ``(week, size)`` pairs, or a CapacitySeries.
    """
    label = f"team '{team}' capacity" if team else "capacity"
    if isinstance(value, CapacitySeries):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return CapacitySeries(((0, _as_whole_number(value, f"{label} size")),))
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise ConfigurationError(f"unsupported {label} value: {value!r}")
    if len(value) == 0:
        raise ConfigurationError(f"{label} must contain at least one entry")
    by_week: Dict[int, int] = {}
    for week, size in _breakpoints_from_entries(value, label):
        by_week[week] = size
    return CapacitySeries(tuple(sorted(by_week.items())))


@dataclass(frozen=True)
class Team:
    name: TeamName
    capacity: CapacitySeries
    wip_limit: Optional[int] = None

    def allows(self, active_features: int) -> bool:
        if self.wip_limit is None:
            return True
        return active_features < self.wip_limit


def make_team(name: str, capacity: object, wip_limit: Optional[object] = None) -> Team:
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError("team name must be a non-empty string")
    limit: Optional[int] = None
    if wip_limit is not None:
        limit = _as_whole_number(wip_limit, f"team '{name}' wip_limit")
        if limit <= 0:
            raise ConfigurationError(f"team '{name}' wip_limit must be positive")
    return Team(name=name, capacity=normalize_capacity(capacity, name), wip_limit=limit)


def validate_team(team: Team) -> Team:
    """Run a directly constructed Team through the ``make_team`` checks."""
    capacity = team.capacity
    if isinstance(capacity, CapacitySeries):
        capacity = list(capacity.breakpoints)
    return make_team(team.name, capacity, team.wip_limit)


@dataclass(frozen=True)
class Requirement:
    """Effort a single team contributes to a feature."""

    weeks: float
    parallel: int = 1

    def to_dict(self) -> Dict[str, object]:
        return {"weeks": self.weeks, "parallel": self.parallel}


@dataclass(frozen=True)
class Feature:
    id: str
    name: str
    requirements: Dict[TeamName, Requirement] = field(default_factory=dict)

    def team_names(self) -> Tuple[TeamName, ...]:
        return tuple(self.requirements)


@dataclass(frozen=True)
class ScheduledAllocation:
    feature: Feature
    start_week: int
    end_week: int
    assignments: Dict[TeamName, Requirement]

    @property
    def feature_id(self) -> str:
        return self.feature.id

    @property
    def duration_weeks(self) -> int:
        return self.end_week - self.start_week

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.feature.id,
            "name": self.feature.name,
            "start_week": self.start_week,
            "end_week": self.end_week,
            "assignments": {team: req.to_dict() for team, req in self.assignments.items()},
        }


@dataclass(frozen=True)
class UnscheduledFeature:
    feature: Feature
    reason: str
    reason_code: str
    team: Optional[TeamName] = None

    @property
    def feature_id(self) -> str:
        return self.feature.id

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.feature.id,
            "name": self.feature.name,
            "reason": self.reason,
            "reason_code": self.reason_code,
            "team": self.team,
        }


@dataclass(frozen=True)
class ScheduleResult:
    scheduled: Tuple[ScheduledAllocation, ...]
    unscheduled: Tuple[UnscheduledFeature, ...]

    @property
    def unscheduled_ids(self) -> Tuple[str, ...]:
        return tuple(item.feature_id for item in self.unscheduled)

    @property
    def total_weeks(self) -> int:
        return max((item.end_week for item in self.scheduled), default=0)

    def allocation_for(self, feature_id: str) -> Optional[ScheduledAllocation]:
        for allocation in self.scheduled:
            if allocation.feature_id == feature_id:
                return allocation
        return None

    def to_dict(self) -> Dict[str, object]:
        return {
            "scheduled": [item.to_dict() for item in self.scheduled],
            "unscheduled": [item.to_dict() for item in self.unscheduled],
            "total_weeks": self.total_weeks,
        }


@dataclass(frozen=True)
class PlanningContext:
    """Everything one scheduling run needs, passed by value."""

    features: Tuple[Feature, ...]
    teams: Dict[TeamName, Team]
    overhead_factor: float = 1.0
    horizon: int = DEFAULT_HORIZON_WEEKS
    start_date: Optional[date] = None

    def team_names(self) -> Iterable[TeamName]:
        return self.teams.keys()
