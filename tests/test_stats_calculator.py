import math
from datetime import datetime, timezone
from types import SimpleNamespace

from app.staff.models.events import EventType
from app.staff.services import stats_calculator as calc


def stat_row(match_id=1, **values):
    fields = dict.fromkeys(
        calc.COUNTING_STATS
        + (
            "field_goals_made",
            "field_goals_attempted",
            "three_pointers_made",
            "three_pointers_attempted",
            "free_throws_made",
            "free_throws_attempted",
        ),
        0,
    )
    fields.update(values)
    return SimpleNamespace(match_id=match_id, **fields)


def match(home_team_id, away_team_id, home_score, away_score):
    return SimpleNamespace(
        home_team_id=home_team_id,
        away_team_id=away_team_id,
        home_score=home_score,
        away_score=away_score,
    )


def test_percentage_is_exact():
    assert calc.safe_percentage(7, 14) == 50.0


def test_percentage_without_attempts_is_zero():
    assert calc.safe_percentage(0, 0) == 0.0
    assert calc.safe_percentage(3, None) == 0.0


def test_efficiency_formula():
    row = stat_row(points=20, rebounds=5, assists=3, steals=2, blocks=1, turnovers=4)
    assert calc.efficiency(row) == 27


def test_overall_stats_without_games_are_all_zero():
    overall = calc.player_overall_stats([])

    for key, value in overall.items():
        assert value == 0, key
        assert not (isinstance(value, float) and (math.isnan(value) or math.isinf(value)))


def test_overall_stats_averages_per_distinct_match():
    rows = [
        stat_row(
            match_id=1,
            points=20,
            rebounds=5,
            assists=3,
            steals=2,
            blocks=1,
            turnovers=4,
            minutes_played=30,
            field_goals_made=7,
            field_goals_attempted=14,
        ),
        stat_row(
            match_id=2,
            points=10,
            rebounds=3,
            minutes_played=20,
            field_goals_made=3,
            field_goals_attempted=6,
            free_throws_made=4,
            free_throws_attempted=5,
        ),
    ]

    overall = calc.player_overall_stats(rows)

    assert overall["total_games"] == 2
    assert overall["games_started"] == 2
    assert overall["points_per_game"] == 15.0
    assert overall["minutes_per_game"] == 25.0
    assert overall["field_goal_percentage"] == 50.0
    assert overall["three_point_percentage"] == 0.0
    assert overall["free_throw_percentage"] == 80.0
    assert overall["efficiency"] == 27 + 13
    assert overall["average_efficiency"] == 20.0


def test_shooting_split_format():
    assert calc.shooting_split(3, 7) == "3/7"
    assert calc.shooting_split(None, None) == "0/0"


def test_game_result_from_both_sides():
    assert calc.game_result(80, 70, is_home=True) == calc.RESULT_WIN
    assert calc.game_result(80, 70, is_home=False) == calc.RESULT_LOSS
    assert calc.game_result(65, 65, is_home=False) == calc.RESULT_DRAW
    assert calc.game_result(None, None, is_home=True) == calc.RESULT_DRAW


def test_team_record_skips_matches_without_score():
    matches = [
        match(1, 2, 80, 70),
        match(2, 1, 90, 60),
        match(1, None, 50, 50),
        match(1, 3, None, 40),
        match(3, 4, 10, 0),
    ]

    record = calc.team_record(1, matches)

    assert record == {
        "games_played": 3,
        "wins": 1,
        "losses": 1,
        "draws": 1,
        "points_for": 80 + 60 + 50,
        "points_against": 70 + 90 + 50,
    }


def test_win_percentage():
    assert calc.win_percentage(3, 4) == 75.0
    assert calc.win_percentage(0, 0) == 0.0


def test_month_buckets_cross_year():
    now = datetime(2025, 11, 15, tzinfo=timezone.utc)
    assert calc.month_buckets(now, 4) == [(2025, 11), (2025, 12), (2026, 1), (2026, 2)]


def test_events_histogram_counts_by_month_and_type():
    now = datetime(2025, 11, 15, tzinfo=timezone.utc)
    events = [
        (datetime(2025, 11, 20), EventType.TRAINING),
        (datetime(2025, 11, 21), EventType.TRAINING),
        (datetime(2025, 12, 1), EventType.MATCH),
        (datetime(2026, 1, 5), EventType.MEETING),
        (datetime(2026, 6, 1), EventType.OTHER),
    ]

    histogram = calc.events_histogram(events, now, 3)

    assert histogram["labels"] == ["2025-11", "2025-12", "2026-01"]
    assert histogram["training"] == [2, 0, 0]
    assert histogram["matches"] == [0, 1, 0]
    assert histogram["meetings"] == [0, 0, 1]
    assert histogram["other"] == [0, 0, 0]
