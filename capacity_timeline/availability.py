from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set, Tuple

from .errors import ConfigurationError
from .models import Team, TeamName


@dataclass
class WeeklyState:
    """Working availability for one team in one week."""

    capacity: int
    remaining: int
    features: Set[str] = field(default_factory=set)

    def assign(self, feature_id: str, parallel: int) -> None:
        if parallel > self.remaining:
            raise ValueError("allocation exceeds remaining capacity")
        self.remaining -= parallel
        self.features.add(feature_id)


class TeamAvailability:
    """Per-run working copy of every team's weekly capacity.

    Built fresh for a single scheduling call and mutated only by that call.
    """

    def __init__(self, teams: Mapping[TeamName, Team], horizon: int) -> None:
        self.horizon = horizon
        self._teams: Dict[TeamName, Team] = dict(teams)
        self._weeks: Dict[TeamName, List[WeeklyState]] = {}
        for name, team in self._teams.items():
            self._weeks[name] = [
                WeeklyState(capacity=size, remaining=size)
                for size in team.capacity.forward_fill(horizon)
            ]

    def _states(self, team: TeamName) -> List[WeeklyState]:
        try:
            return self._weeks[team]
        except KeyError:
            raise ConfigurationError(f"unknown team '{team}'") from None

    def team(self, team: TeamName) -> Team:
        self._states(team)
        return self._teams[team]

    def remaining_capacity(self, team: TeamName, week: int) -> int:
        states = self._states(team)
        if not 0 <= week < self.horizon:
            return 0
        return states[week].remaining

    def active_features(self, team: TeamName, week: int) -> int:
        states = self._states(team)
        if not 0 <= week < self.horizon:
            return 0
        return len(states[week].features)

    def feature_ids(self, team: TeamName, week: int) -> Tuple[str, ...]:
        states = self._states(team)
        if not 0 <= week < self.horizon:
            return ()
        return tuple(sorted(states[week].features))

    def blocking_reason(
        self, team: TeamName, start: int, duration: int, parallel: int
    ) -> Optional[Tuple[str, int]]:
        """Return ``(reason_code, week)`` for the first week that cannot host the window."""
        states = self._states(team)
        team_cfg = self._teams[team]
        for week in range(start, start + duration):
            if week >= self.horizon:
                return "horizon_exhausted", week
            state = states[week]
            if state.remaining < parallel:
                return "insufficient_capacity", week
            if not team_cfg.allows(len(state.features)):
                return "wip_limit_reached", week
        return None

    def reserve(self, team: TeamName, feature_id: str, start: int, duration: int, parallel: int) -> None:
        states = self._states(team)
        for week in range(start, start + duration):
            states[week].assign(feature_id, parallel)
