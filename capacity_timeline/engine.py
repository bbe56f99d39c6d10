from __future__ import annotations

import logging
import threading
from collections import Counter
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .availability import TeamAvailability
from .errors import (
    ConfigurationError,
    SchedulingCancelledError,
    UnschedulableFeatureError,
)
from .models import (
    DEFAULT_HORIZON_WEEKS,
    MAX_HORIZON_WEEKS,
    Feature,
    PlanningContext,
    ScheduledAllocation,
    ScheduleResult,
    Team,
    TeamName,
    UnscheduledFeature,
    make_team,
    validate_team,
)
from .requirements import (
    ResolvedRequirement,
    feature_duration,
    resolve_feature,
    validate_overhead_factor,
    validate_requirement,
)

logger = logging.getLogger(__name__)

FailureContext = Tuple[str, TeamName, int]


def _validate_horizon(horizon: object) -> int:
    if isinstance(horizon, bool) or not isinstance(horizon, int):
        raise ConfigurationError(f"horizon must be an integer number of weeks, got {horizon!r}")
    if not 1 <= horizon <= MAX_HORIZON_WEEKS:
        raise ConfigurationError(f"horizon must be between 1 and {MAX_HORIZON_WEEKS} weeks, got {horizon}")
    return horizon


def coerce_teams(teams: Mapping[TeamName, object]) -> Dict[TeamName, Team]:
    if not isinstance(teams, Mapping):
        raise ConfigurationError("teams must be a mapping of team name to configuration")
    coerced: Dict[TeamName, Team] = {}
    for name, value in teams.items():
        if isinstance(value, Team):
            if value.name != name:
                raise ConfigurationError(f"team keyed as '{name}' is named '{value.name}'")
            coerced[name] = validate_team(value)
        else:
            coerced[name] = make_team(name, value)
    return coerced


def validate_inputs(
    features: Sequence[Feature],
    teams: Mapping[TeamName, object],
    overhead_factor: object,
    horizon: object,
) -> Tuple[Dict[TeamName, Team], float, int]:
    """Check everything up front so that no partial schedule is built from bad input."""
    horizon_weeks = _validate_horizon(horizon)
    overhead = validate_overhead_factor(overhead_factor)
    team_map = coerce_teams(teams)
    seen_ids = set()
    for feature in features:
        if feature.id in seen_ids:
            raise ConfigurationError(f"duplicate feature id '{feature.id}'")
        seen_ids.add(feature.id)
        for team, requirement in feature.requirements.items():
            if team not in team_map:
                raise ConfigurationError(f"feature {feature.id} references unknown team '{team}'")
            validate_requirement(requirement, feature_id=feature.id, team=team)
    return team_map, overhead, horizon_weeks


def _check_cancelled(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise SchedulingCancelledError("scheduling cancelled")


def _blocking_context(
    resolved: Sequence[ResolvedRequirement],
    availability: TeamAvailability,
    start: int,
) -> Optional[FailureContext]:
    for item in resolved:
        if not item.reserves_capacity:
            continue
        blocked = availability.blocking_reason(item.team, start, item.duration_weeks, item.parallel)
        if blocked is not None:
            reason_code, week = blocked
            return reason_code, item.team, week
    return None


def _find_start(
    feature: Feature,
    resolved: Sequence[ResolvedRequirement],
    availability: TeamAvailability,
    cancel: Optional[threading.Event],
) -> Tuple[Optional[int], List[FailureContext]]:
    failures: List[FailureContext] = []
    candidate_start = 0
    while candidate_start < availability.horizon:
        _check_cancelled(cancel)
        context = _blocking_context(resolved, availability, candidate_start)
        if context is None:
            return candidate_start, failures
        logger.debug(
            "Cannot schedule %s at week %d: %s on %s at week %d",
            feature.id,
            candidate_start,
            context[0],
            context[1],
            context[2],
        )
        failures.append(context)
        candidate_start += 1
    return None, failures


def _commit(
    feature: Feature,
    resolved: Sequence[ResolvedRequirement],
    availability: TeamAvailability,
    start: int,
) -> None:
    for item in resolved:
        if not item.reserves_capacity:
            continue
        availability.reserve(item.team, feature.id, start, item.duration_weeks, item.parallel)


def _describe_failure(
    failures: Sequence[FailureContext],
    resolved: Sequence[ResolvedRequirement],
    availability: TeamAvailability,
) -> Tuple[str, str, Optional[TeamName]]:
    horizon = availability.horizon
    if not failures:
        return "horizon_exhausted", f"no feasible start within {horizon} weeks", None
    counts = Counter(code for code, _, _ in failures)
    reason_code = max(counts, key=lambda code: counts[code])
    team = next(team for code, team, _ in failures if code == reason_code)
    parallel = max(item.parallel for item in resolved if item.team == team)
    if reason_code == "insufficient_capacity":
        reason = f"{team} cannot provide {parallel} engineers in parallel within {horizon} weeks"
    elif reason_code == "wip_limit_reached":
        limit = availability.team(team).wip_limit
        reason = f"{team} concurrent-feature limit of {limit} reached within {horizon} weeks"
    else:
        duration = feature_duration(list(resolved))
        reason = f"{team} has no {duration}-week window left before week {horizon}"
    return reason_code, reason, team


def _record_unschedulable(
    feature: Feature,
    reason_code: str,
    reason: str,
    team: Optional[TeamName],
    *,
    strict: bool,
    skipped: List[UnscheduledFeature],
) -> None:
    if strict:
        raise UnschedulableFeatureError(feature.id, reason)
    logger.warning("Feature %s (%s) not scheduled: %s", feature.id, feature.name, reason)
    skipped.append(UnscheduledFeature(feature=feature, reason=reason, reason_code=reason_code, team=team))


def emit_schedule(
    placed: Sequence[ScheduledAllocation],
    skipped: Sequence[UnscheduledFeature],
) -> ScheduleResult:
    """Freeze the accumulated placements, preserving placement order."""
    return ScheduleResult(scheduled=tuple(placed), unscheduled=tuple(skipped))


def schedule(
    features: Sequence[Feature],
    teams: Mapping[TeamName, object],
    overhead_factor: float = 1.0,
    *,
    horizon: int = DEFAULT_HORIZON_WEEKS,
    strict: bool = False,
    cancel: Optional[threading.Event] = None,
) -> ScheduleResult:
    """Place features greedily, in the given order, at their earliest feasible week.

    A placement must fit every referenced team for its whole window: headcount
    (``parallel`` against the remaining capacity of each week) and the team's
    concurrent-feature limit are both enforced. Features that cannot be placed
    inside ``horizon`` weeks are reported in ``ScheduleResult.unscheduled``,
    or raise ``UnschedulableFeatureError`` when ``strict`` is set.
    """
    features = list(features)
    team_map, overhead, horizon_weeks = validate_inputs(features, teams, overhead_factor, horizon)
    logger.info(
        "Starting timeline calculation: %d features, %d teams, overhead %.2f, horizon %d weeks",
        len(features),
        len(team_map),
        overhead,
        horizon_weeks,
    )
    availability = TeamAvailability(team_map, horizon_weeks)
    placed: List[ScheduledAllocation] = []
    skipped: List[UnscheduledFeature] = []

    for feature in features:
        resolved = resolve_feature(feature, overhead)
        duration = feature_duration(resolved)
        if duration > horizon_weeks:
            longest = max(resolved, key=lambda item: item.duration_weeks)
            _record_unschedulable(
                feature,
                "duration_exceeds_horizon",
                f"duration of {duration} weeks exceeds the {horizon_weeks}-week horizon",
                longest.team,
                strict=strict,
                skipped=skipped,
            )
            continue
        start, failures = _find_start(feature, resolved, availability, cancel)
        if start is None:
            reason_code, reason, team = _describe_failure(failures, resolved, availability)
            _record_unschedulable(feature, reason_code, reason, team, strict=strict, skipped=skipped)
            continue
        _commit(feature, resolved, availability, start)
        allocation = ScheduledAllocation(
            feature=feature,
            start_week=start,
            end_week=start + duration,
            assignments=dict(feature.requirements),
        )
        placed.append(allocation)
        logger.debug(
            "Scheduled feature %s (%s): weeks %d-%d",
            feature.id,
            feature.name,
            allocation.start_week,
            allocation.end_week,
        )

    result = emit_schedule(placed, skipped)
    logger.info(
        "Timeline calculation completed: %d scheduled, %d unscheduled, %d weeks total",
        len(result.scheduled),
        len(result.unscheduled),
        result.total_weeks,
    )
    return result


def plan(
    context: PlanningContext,
    *,
    strict: bool = False,
    cancel: Optional[threading.Event] = None,
) -> ScheduleResult:
    return schedule(
        context.features,
        context.teams,
        context.overhead_factor,
        horizon=context.horizon,
        strict=strict,
        cancel=cancel,
    )
