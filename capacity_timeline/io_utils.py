from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd
from dateutil import parser as dateparser

from .errors import ConfigurationError, InvalidRequirementError
from .models import (
    DEFAULT_HORIZON_WEEKS,
    Feature,
    PlanningContext,
    Requirement,
    Team,
    make_team,
)

logger = logging.getLogger(__name__)


def _find_column(columns: Iterable[str], wanted: str) -> Optional[str]:
    lowered = wanted.lower()
    for column in columns:
        if str(column).strip().lower() == lowered:
            return column
    return None


def _parse_number(value: object, field_name: str, default: float) -> float:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return default
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return default
        value = stripped
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidRequirementError(f"invalid numeric value in '{field_name}': {value!r}") from exc


def _parse_parallel(value: object, field_name: str) -> int:
    number = _parse_number(value, field_name, 1.0)
    if not number.is_integer():
        raise InvalidRequirementError(f"'{field_name}' must be a whole number, got {value!r}")
    return int(number)


def load_features(path: str | Path, team_names: Iterable[str]) -> List[Feature]:
    """Read the features CSV: ``feature`` plus ``<team>_weeks`` / ``<team>_parallel`` per team.

    Column names match case-insensitively. Teams with no weeks are left out of
    a feature's requirements.
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    if df.empty:
        raise ConfigurationError("features file is empty")
    columns = list(df.columns)
    feature_col = _find_column(columns, "feature")
    id_col = _find_column(columns, "id")
    team_columns = {
        team: (_find_column(columns, f"{team}_weeks"), _find_column(columns, f"{team}_parallel"))
        for team in team_names
    }
    features: List[Feature] = []
    for idx, row in enumerate(df.to_dict(orient="records")):
        fallback_id = str(idx + 1)
        feature_id = str(row[id_col]).strip() if id_col and str(row[id_col]).strip() else fallback_id
        name = str(row[feature_col]).strip() if feature_col else ""
        requirements: Dict[str, Requirement] = {}
        for team, (weeks_col, parallel_col) in team_columns.items():
            weeks = _parse_number(row.get(weeks_col) if weeks_col else None, f"{team}_weeks", 0.0)
            if weeks < 0:
                raise InvalidRequirementError(f"column '{team}_weeks' contains negative values")
            if weeks == 0:
                continue
            parallel = _parse_parallel(row.get(parallel_col) if parallel_col else None, f"{team}_parallel")
            requirements[team] = Requirement(weeks=weeks, parallel=parallel)
        features.append(Feature(id=feature_id, name=name or f"Feature {idx + 1}", requirements=requirements))
    logger.info("Loaded %d features from %s", len(features), path)
    return features


def _parse_team(name: str, raw: object) -> Team:
    if isinstance(raw, Mapping):
        if "sizes" not in raw:
            raise ConfigurationError(f"team '{name}' must define 'sizes'")
        # teamLoad from older plan files is not a concurrency limit and is ignored
        return make_team(name, raw["sizes"], raw.get("wip_limit", raw.get("wipLimit")))
    return make_team(name, raw)


def _parse_teams(raw: object) -> Dict[str, Team]:
    if not isinstance(raw, Mapping):
        raise ConfigurationError("teams must be an object keyed by team name")
    return {str(name): _parse_team(str(name), value) for name, value in raw.items()}


def _parse_requirement(raw: object, feature_id: str, team: str) -> Requirement:
    if not isinstance(raw, Mapping):
        raise InvalidRequirementError("requirement must be an object", feature_id=feature_id, team=team)
    return Requirement(weeks=raw.get("weeks", 0), parallel=raw.get("parallel", 1))


def parse_features(raw: object) -> List[Feature]:
    if not isinstance(raw, list):
        raise ConfigurationError("features must be an array")
    features: List[Feature] = []
    for idx, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            raise ConfigurationError("feature entries must be objects")
        feature_id = str(entry.get("id", idx + 1))
        requirements_raw = entry.get("requirements") or {}
        if not isinstance(requirements_raw, Mapping):
            raise ConfigurationError(f"requirements for feature {feature_id} must be an object")
        requirements = {
            str(team): _parse_requirement(value, feature_id, str(team))
            for team, value in requirements_raw.items()
        }
        features.append(
            Feature(
                id=feature_id,
                name=str(entry.get("name") or f"Feature {idx + 1}"),
                requirements=requirements,
            )
        )
    return features


def _parse_start_date(raw: object) -> Optional[date]:
    if raw is None or raw == "":
        return None
    try:
        return dateparser.isoparse(str(raw)).date()
    except (ValueError, TypeError) as exc:
        raise ConfigurationError("start_date must be null or an ISO date string") from exc


def parse_plan(data: object) -> PlanningContext:
    """Build a PlanningContext from a decoded plan document."""
    if not isinstance(data, Mapping):
        raise ConfigurationError("plan must be a JSON object")
    teams = _parse_teams(data.get("teams", {}))
    overhead = data.get("overhead_factor", data.get("overheadFactor", 1.0))
    if isinstance(overhead, bool) or not isinstance(overhead, (int, float)):
        raise ConfigurationError("overhead_factor must be a number")
    horizon = data.get("horizon", DEFAULT_HORIZON_WEEKS)
    if isinstance(horizon, bool) or not isinstance(horizon, int):
        raise ConfigurationError("horizon must be an integer")
    features = parse_features(data.get("features", []))
    return PlanningContext(
        features=tuple(features),
        teams=teams,
        overhead_factor=float(overhead),
        horizon=horizon,
        start_date=_parse_start_date(data.get("start_date", data.get("startDate"))),
    )


def load_plan(path: str | Path) -> PlanningContext:
    try:
        data = json.loads(Path(path).read_text())
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"plan file is not valid JSON: {path}") from exc
    context = parse_plan(data)
    logger.info(
        "Loaded plan from %s: %d teams, %d inline features",
        path,
        len(context.teams),
        len(context.features),
    )
    return context


def ensure_directory(path: str | Path) -> Path:
    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target


def write_csv(df: pd.DataFrame, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
