from typing import Optional

from predictx import db
from predictx.models import UserStats

LEADERBOARD_TYPES = ('total', 'quick', 'big')

_SCORE_COLUMNS = {
    'total': UserStats.total_score,
    'quick': UserStats.quick_score,
    'big': UserStats.big_score,
}


def get_stats(fid: int) -> Optional[UserStats]:
    return db.session.get(UserStats, fid)


def get_or_create_stats(fid: int, username: Optional[str] = None, display_name: Optional[str] = None,
                        pfp_url: Optional[str] = None) -> UserStats:
    """Fetch stats for ``fid``, adding a zeroed row to the session if missing.

    The new row is not committed here; callers commit it together with
    whatever write triggered its creation.
    """
    stats = get_stats(fid)
    if stats:
        return stats
    stats = UserStats(
        fid=fid,
        username=username or f"user{fid}",
        display_name=display_name or f"User {fid}",
        pfp_url=pfp_url or '',
    )
    stats.badge_list = []
    db.session.add(stats)
    return stats


def get_leaderboard(board: str = 'total', limit: int = 100) -> list[dict]:
    if board not in LEADERBOARD_TYPES:
        raise ValueError(f"Unknown leaderboard type: {board!r}")
    column = _SCORE_COLUMNS[board]
    rows = (
        UserStats.query
        .order_by(column.desc(), UserStats.fid.asc())
        .limit(limit)
        .all()
    )
    return [row.to_leaderboard_entry(idx + 1) for idx, row in enumerate(rows)]


def user_rank(fid: int) -> int:
    """1-based position by total score, 0 when the user has no stats."""
    stats = get_stats(fid)
    if not stats:
        return 0
    ahead = UserStats.query.filter(
        db.or_(
            UserStats.total_score > stats.total_score,
            db.and_(UserStats.total_score == stats.total_score, UserStats.fid < stats.fid),
        )
    ).count()
    return ahead + 1
