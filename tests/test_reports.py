from datetime import date

from capacity_timeline.engine import schedule
from capacity_timeline.models import Feature, Requirement, make_team
from capacity_timeline.reports import (
    TIMELINE_COLUMNS,
    UTILIZATION_COLUMNS,
    timeline_frame,
    unscheduled_markdown,
    utilization_frame,
)


def _features():
    return [
        Feature(id="1", name="Login", requirements={"Team A": Requirement(weeks=4, parallel=1)}),
        Feature(id="2", name="Search", requirements={"Team A": Requirement(weeks=2, parallel=1)}),
        Feature(id="3", name="Billing", requirements={"Team A": Requirement(weeks=2, parallel=5)}),
    ]


def test_timeline_frame_includes_calendar_dates():
    result = schedule(_features(), {"Team A": 2}, 1.0)
    df = timeline_frame(result, date(2025, 1, 6))

    assert list(df.columns) == TIMELINE_COLUMNS
    assert list(df["id"]) == ["1", "2"]
    login = df.iloc[0]
    assert login["start_date"] == "2025-01-06"
    assert login["end_date"] == "2025-02-03"
    assert login["teams"] == "Team A:4w x1"


def test_timeline_frame_without_start_date_leaves_dates_blank():
    result = schedule(_features(), {"Team A": 2}, 1.0)
    df = timeline_frame(result)
    assert set(df["start_date"]) == {""}


def test_utilization_frame_counts_headcount_and_features():
    teams = {"Team A": make_team("Team A", 2, wip_limit=3)}
    result = schedule(_features(), teams, 1.0)
    df = utilization_frame(result, teams, horizon=52)

    assert list(df.columns) == UTILIZATION_COLUMNS
    assert len(df) == 4
    week0 = df[df["week"] == 0].iloc[0]
    assert week0["capacity"] == 2
    assert week0["used"] == 2
    assert week0["free"] == 0
    assert week0["active_features"] == 2
    week3 = df[df["week"] == 3].iloc[0]
    assert week3["used"] == 1
    assert week3["active_features"] == 1


def test_utilization_frame_applies_overhead_factor():
    features = [Feature(id="1", name="Login", requirements={"Team A": Requirement(weeks=4, parallel=1)})]
    result = schedule(features, {"Team A": 1}, 1.5)
    df = utilization_frame(result, {"Team A": 1}, horizon=52, overhead_factor=1.5)

    assert len(df) == 6
    assert list(df["used"]) == [1] * 6


def test_unscheduled_markdown_lists_reasons():
    result = schedule(_features(), {"Team A": 2}, 1.0)
    text = unscheduled_markdown(result)
    assert text.startswith("# Unscheduled Features")
    assert "3 – Billing" in text
    assert "Bottleneck Team: Team A" in text


def test_unscheduled_markdown_when_everything_fits():
    result = schedule(_features()[:2], {"Team A": 2}, 1.0)
    assert "All features were scheduled." in unscheduled_markdown(result)
