"""
League leaderboard calculation.

A team's score is the sum of its best (lowest) four player scores, golf style.
Teams are ranked ascending by score; ties go to the team created first, then
to the lower team id, so every rank is unique and recomputation is stable.
"""

import math
from typing import Dict, Iterable, List

from fairway.database.repositories import SettlementGateway
from fairway.models.schemas import LeagueRecord, PlayerRecord, TeamRecord, TeamScore
from fairway.utils.constants import BEST_SCORES_COUNTED


def score_team(
    team: TeamRecord,
    players_by_id: Dict[str, PlayerRecord],
    best_of: int = BEST_SCORES_COUNTED,
) -> TeamScore:
    """
    Score one team.

    Missing scores count as 0. Player ids that match no known player are
    ignored, and a team with fewer than best_of players sums what it has.
    """
    scores = sorted(
        (players_by_id[pid].current_score or 0)
        for pid in team.player_ids
        if pid in players_by_id
    )
    counted = scores[:best_of]
    return TeamScore(
        team_id=team.id,
        owner_id=team.owner_id,
        total_score=sum(counted),
        players_counted=len(counted),
    )


def _tie_break_key(team: TeamRecord):
    created = team.created_at.timestamp() if team.created_at else math.inf
    return (created, team.id)


def rank_teams(
    teams: Iterable[TeamRecord],
    players: Iterable[PlayerRecord],
    best_of: int = BEST_SCORES_COUNTED,
) -> List[TeamScore]:
    """Build the ranked leaderboard for a set of teams. Pure, no storage access."""
    players_by_id = {p.id: p for p in players}
    teams_by_id = {t.id: t for t in teams}

    scored = [score_team(team, players_by_id, best_of) for team in teams_by_id.values()]
    scored.sort(key=lambda s: (s.total_score, _tie_break_key(teams_by_id[s.team_id])))

    for index, team_score in enumerate(scored):
        team_score.rank = index + 1
    return scored


async def calculate_leaderboard(
    gateway: SettlementGateway, league: LeagueRecord
) -> List[TeamScore]:
    """
    Fetch a league's teams and their players, then rank them.

    Players are fetched in one query for the whole league.

    Returns:
        Ranked leaderboard, empty if the league has no teams
    """
    teams = await gateway.teams.list_by_league(league.id)
    if not teams:
        return []

    player_ids = list(dict.fromkeys(pid for team in teams for pid in team.player_ids))
    players = await gateway.players.get_by_ids(player_ids) if player_ids else []
    return rank_teams(teams, players)
