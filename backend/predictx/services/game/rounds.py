"""Round clock.

Every challenge type runs on its own fixed cycle derived purely from the
wall clock, so any process computes the same round for the same instant:

- quick: 5 minute slots aligned to the epoch (00:00, 00:05, 00:10, ...)
- big:   24 hour slots aligned to UTC midnight

All times are epoch milliseconds. Functions take an optional ``now`` and
fall back to the system clock.
"""
import time
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional

from .errors import InvalidChallengeType

CHALLENGE_TYPES = ('quick', 'big')

QUICK_ROUND_MS = 5 * 60 * 1000
BIG_ROUND_MS = 24 * 60 * 60 * 1000

# Quick bets close during the final minute of the slot
QUICK_LOCKOUT_MS = 60 * 1000
# Big bets close from 22:00 UTC until the round settles at midnight
BIG_LOCKOUT_START_HOUR_UTC = 22

CHALLENGE_DURATIONS = {
    'quick': QUICK_ROUND_MS,
    'big': BIG_ROUND_MS,
}


@dataclass(frozen=True)
class RoundInfo:
    round_id: str
    round_number: int
    start_time: int
    end_time: int
    time_remaining: int
    is_active: bool

    def to_dict(self):
        return asdict(self)


def now_ms() -> int:
    return int(time.time() * 1000)


def _resolve_now(now: Optional[int]) -> int:
    return now_ms() if now is None else int(now)


def validate_challenge_type(challenge_type) -> str:
    if challenge_type not in CHALLENGE_TYPES:
        raise InvalidChallengeType(f"Unknown challenge type: {challenge_type!r}")
    return challenge_type


def _local_midnight_ms(ts_ms: int) -> int:
    local = datetime.fromtimestamp(ts_ms / 1000)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp() * 1000)


def _utc_date(ts_ms: int):
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).date()


def get_current_quick_round(now: Optional[int] = None) -> RoundInfo:
    now = _resolve_now(now)
    start = (now // QUICK_ROUND_MS) * QUICK_ROUND_MS
    end = start + QUICK_ROUND_MS
    # Ordinal slot of the (local) day, 1-based
    round_number = (start - _local_midnight_ms(start)) // QUICK_ROUND_MS + 1
    return RoundInfo(
        round_id=f"quick-{start}",
        round_number=int(round_number),
        start_time=start,
        end_time=end,
        time_remaining=end - now,
        is_active=now < end,
    )


def get_current_big_round(now: Optional[int] = None) -> RoundInfo:
    now = _resolve_now(now)
    # Unix time has no leap seconds, so UTC days are exact multiples
    start = (now // BIG_ROUND_MS) * BIG_ROUND_MS
    end = start + BIG_ROUND_MS
    day = _utc_date(start)
    return RoundInfo(
        round_id=f"big-{day.isoformat()}",
        round_number=day.timetuple().tm_yday,
        start_time=start,
        end_time=end,
        time_remaining=end - now,
        is_active=now < end,
    )


def get_current_round(challenge_type: str, now: Optional[int] = None) -> RoundInfo:
    validate_challenge_type(challenge_type)
    if challenge_type == 'quick':
        return get_current_quick_round(now)
    return get_current_big_round(now)


def get_previous_round_id(challenge_type: str, now: Optional[int] = None) -> str:
    current = get_current_round(challenge_type, now)
    period = CHALLENGE_DURATIONS[challenge_type]
    previous = get_current_round(challenge_type, current.start_time - period)
    return previous.round_id


def is_round_finished(round_info: RoundInfo, now: Optional[int] = None) -> bool:
    return _resolve_now(now) >= round_info.end_time


def round_key(coin_id: str, challenge_type: str, round_id: str) -> str:
    return f"round:{coin_id}:{challenge_type}:{round_id}"


def user_round_key(fid: int, coin_id: str, challenge_type: str, round_id: str) -> str:
    return f"user-round:{fid}:{coin_id}:{challenge_type}:{round_id}"


def format_time_remaining(ms: int) -> str:
    total_seconds = max(0, int(ms) // 1000)
    if total_seconds >= 3600:
        hours = total_seconds // 3600
        minutes = (total_seconds % 3600) // 60
        return f"{hours}h {minutes}m"
    if total_seconds >= 60:
        minutes = total_seconds // 60
        seconds = total_seconds % 60
        return f"{minutes}m {seconds}s"
    return f"{total_seconds}s"


def is_quick_challenge_locked(now: Optional[int] = None) -> bool:
    return get_current_quick_round(now).time_remaining <= QUICK_LOCKOUT_MS


def is_big_challenge_locked(now: Optional[int] = None) -> bool:
    now = _resolve_now(now)
    hour = datetime.fromtimestamp(now / 1000, tz=timezone.utc).hour
    return hour >= BIG_LOCKOUT_START_HOUR_UTC


def is_challenge_locked(challenge_type: str, now: Optional[int] = None) -> bool:
    validate_challenge_type(challenge_type)
    if challenge_type == 'quick':
        return is_quick_challenge_locked(now)
    return is_big_challenge_locked(now)
