from typing import Optional

from flask import current_app

from predictx import db
from .errors import RewardAlreadyClaimed, UnknownUser
from . import rounds
from .stats import get_stats

DAILY_REWARD_BASE = 100
DAILY_REWARD_STREAK_STEP = 10
DAILY_REWARD_MAX_STREAK_BONUS = 200


def daily_reward_points(streak_days: int) -> int:
    bonus = min((streak_days - 1) * DAILY_REWARD_STREAK_STEP, DAILY_REWARD_MAX_STREAK_BONUS)
    return DAILY_REWARD_BASE + max(0, bonus)


def claim_daily_reward(fid: int, now: Optional[int] = None) -> dict:
    """Grant the once-per-UTC-day login reward.

    Claiming on consecutive days grows the streak and the bonus; a gap of a
    full day resets it to 1.
    """
    now = rounds.now_ms() if now is None else int(now)
    stats = get_stats(fid)
    if not stats:
        raise UnknownUser(f"No stats for fid {fid}")

    today_start = (now // rounds.BIG_ROUND_MS) * rounds.BIG_ROUND_MS
    yesterday_start = today_start - rounds.BIG_ROUND_MS
    last = stats.last_daily_reward_at

    if last is not None and last >= today_start:
        raise RewardAlreadyClaimed('Daily reward already claimed today')

    streak_days = stats.daily_streak_days + 1 if last is not None and last >= yesterday_start else 1
    points = daily_reward_points(streak_days)

    try:
        stats.total_score += points
        stats.last_daily_reward_at = now
        stats.daily_streak_days = streak_days
        db.session.add(stats)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(f"[daily-reward] fid={fid} streak_days={streak_days} points={points}")
    return {'points': points, 'streak_days': streak_days, 'total_score': stats.total_score}
