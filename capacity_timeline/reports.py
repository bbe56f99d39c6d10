from __future__ import annotations

from datetime import date
from typing import Dict, List, Mapping, Optional

import pandas as pd
from dateutil.relativedelta import relativedelta

from .engine import coerce_teams
from .models import Requirement, ScheduleResult, TeamName
from .requirements import duration_weeks

DATE_FMT = "%Y-%m-%d"

TIMELINE_COLUMNS = [
    "id",
    "name",
    "start_week",
    "end_week",
    "duration_weeks",
    "start_date",
    "end_date",
    "teams",
]

UTILIZATION_COLUMNS = ["team", "week", "capacity", "used", "free", "active_features"]


def week_start(start_date: Optional[date], week: int) -> str:
    if start_date is None:
        return ""
    return (start_date + relativedelta(weeks=week)).strftime(DATE_FMT)


def _format_assignments(assignments: Mapping[str, Requirement]) -> str:
    parts = []
    for team, requirement in assignments.items():
        parts.append(f"{team}:{requirement.weeks:g}w x{requirement.parallel}")
    return ";".join(parts)


def timeline_frame(result: ScheduleResult, start_date: Optional[date] = None) -> pd.DataFrame:
    rows: List[Dict[str, object]] = []
    for allocation in result.scheduled:
        rows.append(
            {
                "id": allocation.feature.id,
                "name": allocation.feature.name,
                "start_week": allocation.start_week,
                "end_week": allocation.end_week,
                "duration_weeks": allocation.duration_weeks,
                "start_date": week_start(start_date, allocation.start_week),
                "end_date": week_start(start_date, allocation.end_week),
                "teams": _format_assignments(allocation.assignments),
            }
        )
    return pd.DataFrame(rows, columns=TIMELINE_COLUMNS)


def utilization_frame(
    result: ScheduleResult,
    teams: Mapping[TeamName, object],
    horizon: int,
    overhead_factor: float = 1.0,
) -> pd.DataFrame:
    """Per team and week: headcount, reserved headcount and distinct active features.

    Each allocation reserves ``parallel`` for its own team duration, recomputed
    from the original requirement with the run's overhead factor.
    """
    team_map = coerce_teams(teams)
    weeks = min(max(result.total_weeks, 1), horizon)
    used: Dict[TeamName, List[int]] = {name: [0] * weeks for name in team_map}
    active: Dict[TeamName, List[int]] = {name: [0] * weeks for name in team_map}
    for allocation in result.scheduled:
        for team, requirement in allocation.assignments.items():
            if team not in used:
                continue
            span = duration_weeks(requirement, overhead_factor)
            for week in range(allocation.start_week, min(allocation.start_week + span, weeks)):
                used[team][week] += int(requirement.parallel)
                active[team][week] += 1
    rows: List[Dict[str, object]] = []
    for name, team in team_map.items():
        sizes = team.capacity.forward_fill(weeks)
        for week in range(weeks):
            rows.append(
                {
                    "team": name,
                    "week": week,
                    "capacity": sizes[week],
                    "used": used[name][week],
                    "free": sizes[week] - used[name][week],
                    "active_features": active[name][week],
                }
            )
    return pd.DataFrame(rows, columns=UTILIZATION_COLUMNS)


def unscheduled_markdown(result: ScheduleResult) -> str:
    lines: List[str] = ["# Unscheduled Features", ""]
    if not result.unscheduled:
        lines.append("All features were scheduled.")
    else:
        for item in result.unscheduled:
            lines.append(f"- **{item.feature.id} – {item.feature.name}**")
            lines.append(f"  - Reason: {item.reason}")
            if item.team:
                lines.append(f"  - Bottleneck Team: {item.team}")
            lines.append("")
    return "\n".join(lines).strip() + "\n"
