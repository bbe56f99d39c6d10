from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Tuple

from . import engine
from .errors import PlanningInputError, UnschedulableFeatureError
from .io_utils import ensure_directory, load_features, load_plan, write_csv
from .models import PlanningContext, ScheduleResult
from .reports import timeline_frame, unscheduled_markdown, utilization_frame


def _parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Feature timeline scheduler (JSON/CSV in, CSV out, no UI)."
    )
    parser.add_argument("--plan", required=True, help="Path to the plan JSON file (teams, overhead, start date)")
    parser.add_argument(
        "--features",
        help="Path to a features CSV (feature, <team>_weeks, <team>_parallel); replaces features in the plan",
    )
    parser.add_argument("--outdir", default="out", help="Output directory for generated files (default: ./out)")
    parser.add_argument("--horizon", type=int, help="Override the number of weeks searched")
    parser.add_argument("--overhead", type=float, help="Override the plan's overhead factor")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail if any feature cannot be scheduled within the horizon",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Schedule and print a summary without writing output files",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    return parser.parse_args(argv)


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")


def _load_context(args: argparse.Namespace) -> PlanningContext:
    plan_path = Path(args.plan)
    if not plan_path.exists():
        raise PlanningInputError(f"plan file not found at {plan_path}")
    context = load_plan(plan_path)
    if args.features:
        features_path = Path(args.features)
        if not features_path.exists():
            raise PlanningInputError(f"features file not found at {features_path}")
        context = replace(context, features=tuple(load_features(features_path, context.team_names())))
    if args.horizon is not None:
        context = replace(context, horizon=args.horizon)
    if args.overhead is not None:
        context = replace(context, overhead_factor=args.overhead)
    return context


def _print_summary(result: ScheduleResult) -> None:
    if not result.scheduled:
        print("No features scheduled.")
    else:
        print("Scheduled features:")
        for allocation in result.scheduled:
            weeks_label = "week" if allocation.duration_weeks == 1 else "weeks"
            print(
                f"- {allocation.feature.id} {allocation.feature.name}: "
                f"week {allocation.start_week} → {allocation.end_week} "
                f"({allocation.duration_weeks} {weeks_label})"
            )
    if result.unscheduled:
        print("\nUnscheduled features:")
        for item in result.unscheduled:
            print(f"- {item.feature.id} {item.feature.name}: {item.reason}")
    else:
        print("\nUnscheduled features: none")


def _write_outputs(result: ScheduleResult, context: PlanningContext, outdir: Path) -> Tuple[Path, Path, Path]:
    outdir_path = ensure_directory(outdir)
    timeline_path = outdir_path / "feature_timeline.csv"
    utilization_path = outdir_path / "team_utilization.csv"
    unscheduled_path = outdir_path / "unscheduled_features.md"
    write_csv(timeline_frame(result, context.start_date), timeline_path)
    write_csv(
        utilization_frame(result, context.teams, context.horizon, context.overhead_factor),
        utilization_path,
    )
    unscheduled_path.write_text(unscheduled_markdown(result))
    return timeline_path, utilization_path, unscheduled_path


def main(argv: Optional[list] = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.log_level)
    try:
        context = _load_context(args)
        result = engine.plan(context, strict=args.strict)
    except UnschedulableFeatureError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    if args.dry_run:
        _print_summary(result)
        return 0

    for path in _write_outputs(result, context, Path(args.outdir)):
        print(f"Wrote {path}")
    if result.unscheduled:
        print("Unscheduled features:")
        for item in result.unscheduled:
            print(f"- {item.feature.id} {item.feature.name}: {item.reason}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
