"""
Расчет производной статистики игроков и команд.

Все функции чистые: на вход строки PlayerStat / Match (или любые объекты
с теми же атрибутами), на выход словари для схем ответа. Ничего не
сохраняется, нулевые знаменатели всегда дают 0.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from app.staff.models.events import EventType

COUNTING_STATS = (
    "points",
    "rebounds",
    "assists",
    "steals",
    "blocks",
    "turnovers",
    "minutes_played",
)

SHOOTING_SPLITS = {
    "field_goal_percentage": ("field_goals_made", "field_goals_attempted"),
    "three_point_percentage": ("three_pointers_made", "three_pointers_attempted"),
    "free_throw_percentage": ("free_throws_made", "free_throws_attempted"),
}

RESULT_WIN = "WIN"
RESULT_LOSS = "LOSS"
RESULT_DRAW = "DRAW"


def safe_percentage(made: Optional[int], attempted: Optional[int]) -> float:
    """100 * made / attempted, 0 если попыток не было"""
    if not attempted or attempted <= 0:
        return 0.0
    return 100.0 * (made or 0) / attempted


def safe_average(total: Optional[float], count: int) -> float:
    if not count or count <= 0:
        return 0.0
    return (total or 0) / count


def efficiency(row: Any) -> int:
    """points + rebounds + assists + steals + blocks - turnovers"""
    return (
        (row.points or 0)
        + (row.rebounds or 0)
        + (row.assists or 0)
        + (row.steals or 0)
        + (row.blocks or 0)
        - (row.turnovers or 0)
    )


def shooting_split(made: Optional[int], attempted: Optional[int]) -> str:
    return f"{made or 0}/{attempted or 0}"


def player_overall_stats(rows: Iterable[Any]) -> Dict[str, Any]:
    """
    Сводная статистика игрока по строкам PlayerStat завершенных матчей.

    total_games считается по уникальным match_id. Поля isStarter в модели
    нет, поэтому games_started равно total_games.
    """
    rows = list(rows)
    total_games = len({row.match_id for row in rows})

    sums = {
        field: sum((getattr(row, field) or 0) for row in rows)
        for field in COUNTING_STATS
    }
    total_efficiency = sum(efficiency(row) for row in rows)

    result = {
        "total_games": total_games,
        "games_started": total_games,
        "minutes_per_game": safe_average(sums["minutes_played"], total_games),
        "points_per_game": safe_average(sums["points"], total_games),
        "rebounds_per_game": safe_average(sums["rebounds"], total_games),
        "assists_per_game": safe_average(sums["assists"], total_games),
        "steals_per_game": safe_average(sums["steals"], total_games),
        "blocks_per_game": safe_average(sums["blocks"], total_games),
        "turnovers_per_game": safe_average(sums["turnovers"], total_games),
        "efficiency": total_efficiency if total_games else 0,
        "average_efficiency": safe_average(total_efficiency, total_games),
    }

    for key, (made_field, attempted_field) in SHOOTING_SPLITS.items():
        made = sum((getattr(row, made_field) or 0) for row in rows)
        attempted = sum((getattr(row, attempted_field) or 0) for row in rows)
        result[key] = safe_percentage(made, attempted)

    return result


def game_result(
    home_score: Optional[int], away_score: Optional[int], is_home: bool
) -> str:
    """Результат матча с точки зрения одной из сторон"""
    home = home_score or 0
    away = away_score or 0
    if home == away:
        return RESULT_DRAW
    home_won = home > away
    return RESULT_WIN if home_won == is_home else RESULT_LOSS


def team_record(team_id: int, matches: Iterable[Any]) -> Dict[str, int]:
    """
    Счетчики команды по завершенным матчам.

    Учитываются только матчи, где команда играла и оба счета заданы.
    """
    record = {
        "games_played": 0,
        "wins": 0,
        "losses": 0,
        "draws": 0,
        "points_for": 0,
        "points_against": 0,
    }

    for match in matches:
        if match.home_score is None or match.away_score is None:
            continue

        if match.home_team_id == team_id:
            scored, conceded = match.home_score, match.away_score
        elif match.away_team_id == team_id:
            scored, conceded = match.away_score, match.home_score
        else:
            continue

        record["games_played"] += 1
        record["points_for"] += scored
        record["points_against"] += conceded
        if scored > conceded:
            record["wins"] += 1
        elif scored < conceded:
            record["losses"] += 1
        else:
            record["draws"] += 1

    return record


def win_percentage(wins: int, games_played: int) -> float:
    return safe_percentage(wins, games_played)


def add_months(year: int, month: int, offset: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def month_buckets(now: datetime, months: int) -> List[Tuple[int, int]]:
    """(year, month) для текущего и следующих месяцев"""
    return [add_months(now.year, now.month, i) for i in range(months)]


def events_histogram(
    events: Sequence[Tuple[datetime, EventType]], now: datetime, months: int
) -> Dict[str, List]:
    """
    Количество событий по (месяц, тип) на `months` месяцев вперед,
    начиная с текущего. События вне окна игнорируются.
    """
    buckets = month_buckets(now, months)
    index = {bucket: i for i, bucket in enumerate(buckets)}

    series = {event_type: [0] * months for event_type in EventType}
    for start_time, event_type in events:
        position = index.get((start_time.year, start_time.month))
        if position is None:
            continue
        series[EventType(event_type)][position] += 1

    return {
        "labels": [f"{year:04d}-{month:02d}" for year, month in buckets],
        "training": series[EventType.TRAINING],
        "matches": series[EventType.MATCH],
        "meetings": series[EventType.MEETING],
        "other": series[EventType.OTHER],
    }
