"""Goal and assist rankings, per-edition subtotals and award grouping over match events."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar, Union

from footydb.models import AwardRow, MatchEvent


T = TypeVar("T")

SHOOTOUT_PERIODS = {"PSO", "PKSO"}
SHOOTOUT_NOTE = "PK戦"
GOAL_EVENT_TYPES = {"GOAL", "PG", "PENALTY", "PENALTY_GOAL", "PENALTYGOAL", "PK_GOAL"}
AWARD_ORDER = ("golden_ball", "best_xi", "golden_glove", "best_young", "golden_boot")


def is_shootout(event: MatchEvent) -> bool:
    """Shootout kicks never count as goals: period ``PSO``/``PKSO`` or a ``PK戦`` note."""

    return event.period.strip().upper() in SHOOTOUT_PERIODS or SHOOTOUT_NOTE in event.note


def is_goal_event(event: MatchEvent) -> bool:
    return event.event_type.strip().upper() in GOAL_EVENT_TYPES


def _counted_goals(events: Iterable[MatchEvent]) -> Iterable[MatchEvent]:
    for event in events:
        if is_shootout(event) or not is_goal_event(event):
            continue
        yield event


def _in_edition(events: Iterable[MatchEvent], competition: str, edition: str) -> List[MatchEvent]:
    return [
        event
        for event in events
        if event.competition.strip() == competition and event.edition.strip() == str(edition)
    ]


@dataclass(frozen=True)
class GoalRankRow:
    player: str
    team: str
    goals: int


@dataclass(frozen=True)
class AssistRankRow:
    player: str
    team: str
    assists: int


def goal_ranking(events: Iterable[MatchEvent], competition: str, edition: str) -> List[GoalRankRow]:
    """Goals per (player, team), most first; ties ordered by player name."""

    tally: Counter[Tuple[str, str]] = Counter()
    for event in _counted_goals(_in_edition(events, competition, edition)):
        player = event.player.strip()
        team = event.team.strip()
        if player and team:
            tally[(player, team)] += 1
    rows = [GoalRankRow(player=player, team=team, goals=goals) for (player, team), goals in tally.items()]
    return sorted(rows, key=lambda row: (-row.goals, row.player, row.team))


def assist_ranking(events: Iterable[MatchEvent], competition: str, edition: str) -> List[AssistRankRow]:
    """Assists credited on goal events, per (assisting player, scoring team)."""

    tally: Counter[Tuple[str, str]] = Counter()
    for event in _counted_goals(_in_edition(events, competition, edition)):
        assist = event.assist.strip()
        if assist:
            tally[(assist, event.team.strip())] += 1
    rows = [AssistRankRow(player=player, team=team, assists=count) for (player, team), count in tally.items()]
    return sorted(rows, key=lambda row: (-row.assists, row.player, row.team))


def add_rank(rows: Sequence[T], score: Union[str, Callable[[T], float]]) -> List[Tuple[int, T]]:
    """Standard competition ranking (1, 1, 3): equal scores share the rank of the first of them.

    ``rows`` must already be ordered by score; ``score`` is an attribute name
    or a callable.
    """

    score_of = score if callable(score) else (lambda row: getattr(row, score))
    ranked: List[Tuple[int, T]] = []
    last_score: Optional[float] = None
    rank = 0
    for position, row in enumerate(rows, start=1):
        value = score_of(row)
        if last_score is None or value != last_score:
            rank = position
            last_score = value
        ranked.append((rank, row))
    return ranked


@dataclass(frozen=True)
class Subtotal:
    """Goals and assists for one grouping; the combined figure is always derived."""

    label: str
    goals: int = 0
    assists: int = 0

    @property
    def goals_assists(self) -> int:
        return self.goals + self.assists


def _tally(
    events: Iterable[MatchEvent],
    goal_label: Callable[[MatchEvent], str],
    assist_label: Callable[[MatchEvent], str],
) -> Dict[str, Tuple[int, int]]:
    goals: Counter[str] = Counter()
    assists: Counter[str] = Counter()
    for event in _counted_goals(events):
        label = goal_label(event)
        if label:
            goals[label] += 1
        label = assist_label(event)
        if label:
            assists[label] += 1
    return {label: (goals[label], assists[label]) for label in {*goals, *assists}}


def edition_subtotals(
    events: Iterable[MatchEvent],
    competition: str,
    *,
    player: Optional[str] = None,
    team: Optional[str] = None,
) -> List[Subtotal]:
    """Goals/assists per edition of ``competition``, optionally for one player and/or team.

    Editions are returned newest first.
    """

    player = (player or "").strip()
    team = (team or "").strip()
    selected = [
        event
        for event in events
        if event.competition.strip() == competition and (not team or event.team.strip() == team)
    ]

    def goal_label(event: MatchEvent) -> str:
        if player and event.player.strip() != player:
            return ""
        return event.edition.strip() if event.player.strip() else ""

    def assist_label(event: MatchEvent) -> str:
        assist = event.assist.strip()
        if not assist or (player and assist != player):
            return ""
        return event.edition.strip()

    totals = _tally(selected, goal_label, assist_label)
    ordered = sorted(totals, key=lambda edition: (-int(edition) if edition.isdigit() else 0, edition))
    return [Subtotal(edition, *totals[edition]) for edition in ordered]


def career_totals(events: Iterable[MatchEvent], *, team: Optional[str] = None) -> List[Subtotal]:
    """Goals/assists per player across every competition and edition, best first."""

    team = (team or "").strip()
    selected = [event for event in events if not team or event.team.strip() == team]
    totals = _tally(selected, lambda event: event.player.strip(), lambda event: event.assist.strip())
    rows = [Subtotal(player, *counts) for player, counts in totals.items()]
    return sorted(rows, key=lambda row: (-row.goals_assists, -row.goals, row.label))


def team_tallies(events: Iterable[MatchEvent], competition: str, edition: str) -> List[Subtotal]:
    """Goals scored and assists made per team within one edition."""

    selected = _in_edition(events, competition, edition)
    totals = _tally(
        selected,
        lambda event: event.team.strip(),
        lambda event: event.team.strip() if event.assist.strip() else "",
    )
    rows = [Subtotal(team, *counts) for team, counts in totals.items()]
    return sorted(rows, key=lambda row: (-row.goals, row.label))


@dataclass(frozen=True)
class AwardGroup:
    key: str
    name: str
    items: Tuple[AwardRow, ...]


def _award_rank_key(row: AwardRow) -> tuple:
    rank = row.rank.strip()
    try:
        return (0, float(rank), "")
    except ValueError:
        return (1, 0.0, rank)


def award_groups(awards: Iterable[AwardRow], competition: str, edition: str) -> List[AwardGroup]:
    """Awards of one edition grouped by ``award_key`` in display order.

    Known keys come first in a fixed order; within a group numeric ranks come
    first in ascending order, then the rest alphabetically.
    """

    grouped: Dict[str, Tuple[str, List[AwardRow]]] = {}
    for row in awards:
        if row.competition != competition or row.edition != str(edition):
            continue
        key = row.award_key or "other"
        if key not in grouped:
            grouped[key] = (row.award_name or key, [])
        grouped[key][1].append(row)

    def order(key: str) -> int:
        return AWARD_ORDER.index(key) if key in AWARD_ORDER else 999

    return [
        AwardGroup(key=key, name=name, items=tuple(sorted(items, key=_award_rank_key)))
        for key, (name, items) in sorted(grouped.items(), key=lambda item: order(item[0]))
    ]


__all__ = [
    "AWARD_ORDER",
    "AssistRankRow",
    "AwardGroup",
    "GOAL_EVENT_TYPES",
    "GoalRankRow",
    "Subtotal",
    "add_rank",
    "assist_ranking",
    "award_groups",
    "career_totals",
    "edition_subtotals",
    "goal_ranking",
    "is_goal_event",
    "is_shootout",
    "team_tallies",
]
