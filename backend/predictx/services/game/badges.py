from typing import Optional

from . import rounds

BADGE_DEFINITIONS = {
    'first_prediction': {'name': 'First Steps', 'description': 'Made your first prediction', 'icon': '🎯'},
    'streak_3': {'name': '3-Win Streak', 'description': 'Win 3 predictions in a row', 'icon': '🔥'},
    'streak_5': {'name': '5-Win Streak', 'description': 'Win 5 predictions in a row', 'icon': '🔥'},
    'streak_7': {'name': '7-Win Streak', 'description': 'Win 7 predictions in a row', 'icon': '🔥🔥'},
    'streak_10': {'name': '10-Win Streak', 'description': 'Win 10 predictions in a row', 'icon': '🔥🔥'},
    'streak_20': {'name': '20-Win Streak', 'description': 'Win 20 predictions in a row', 'icon': '🔥🔥🔥'},
    'streak_30': {'name': '30-Win Streak', 'description': 'Win 30 predictions in a row', 'icon': '🔥🔥🔥'},
    'master': {'name': 'Master', 'description': 'Reach 10,000 total score', 'icon': '⭐'},
    'champion': {'name': 'Champion', 'description': 'Win 100 predictions', 'icon': '👑'},
    'top_100': {'name': 'Top 100', 'description': 'Reach top 100 on leaderboard', 'icon': '🏆'},
    'top_10': {'name': 'Top 10', 'description': 'Reach top 10 on leaderboard', 'icon': '🏅'},
    'legend': {'name': 'Legend', 'description': 'Reach #1 on leaderboard', 'icon': '🌟'},
}

STREAK_LADDER = (30, 20, 10, 7, 5, 3)
MASTER_SCORE = 10000
CHAMPION_WINS = 100


def create_badge(badge_type: str, earned_at: Optional[int] = None) -> dict:
    definition = BADGE_DEFINITIONS[badge_type]
    return {
        'type': badge_type,
        'name': definition['name'],
        'description': definition['description'],
        'icon': definition['icon'],
        'earned_at': earned_at if earned_at is not None else rounds.now_ms(),
    }


def check_for_new_badges(stats, now: Optional[int] = None) -> list[dict]:
    """Return badges ``stats`` qualifies for but does not hold yet.

    At most one streak badge and one rank badge are awarded per check, the
    highest one that is still missing.
    """
    earned = {b.get('type') for b in stats.badge_list}
    found = []

    if 'first_prediction' not in earned and stats.total_predictions >= 1:
        found.append('first_prediction')

    for length in STREAK_LADDER:
        key = f"streak_{length}"
        if key not in earned and stats.current_streak >= length:
            found.append(key)
            break

    if 'master' not in earned and stats.total_score >= MASTER_SCORE:
        found.append('master')
    if 'champion' not in earned and stats.won_predictions >= CHAMPION_WINS:
        found.append('champion')

    rank = stats.rank or 0
    if rank >= 1:
        if 'legend' not in earned and rank == 1:
            found.append('legend')
        elif 'top_10' not in earned and rank <= 10:
            found.append('top_10')
        elif 'top_100' not in earned and rank <= 100:
            found.append('top_100')

    return [create_badge(b, now) for b in found]
