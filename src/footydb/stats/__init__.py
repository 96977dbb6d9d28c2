"""Aggregations over match events and awards."""

from .ranking import (
    AssistRankRow,
    AwardGroup,
    GoalRankRow,
    Subtotal,
    add_rank,
    assist_ranking,
    award_groups,
    career_totals,
    edition_subtotals,
    goal_ranking,
    is_goal_event,
    is_shootout,
    team_tallies,
)

__all__ = [
    "AssistRankRow",
    "AwardGroup",
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
