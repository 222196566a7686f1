from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from predictx import db
from predictx.models import Prediction
from . import rounds
from .errors import ChallengeLocked, DuplicateRoundPrediction, InvalidPrediction
from .scoring import DIRECTIONS
from .stats import get_or_create_stats

COIN_IDS = ('bitcoin', 'ethereum')

ROUND_CONSTRAINT = 'uq_prediction_user_round'
ROUND_CONSTRAINT_COLUMNS = 'prediction.fid, prediction.coin_id, prediction.challenge_type, prediction.round_id'

LOCKED_MESSAGES = {
    'quick': 'Quick Challenge betting closes in the last 60 seconds. Please wait for the next round!',
    'big': 'Big Challenge betting is locked between UTC 22:00-00:00. New round opens at 00:00:01.',
}

DUPLICATE_MESSAGES = {
    'quick': 'You already have a bet in this round. Please wait for the next round.',
    'big': 'You can only make ONE bet per day on Big Challenge. Once placed, your prediction cannot be changed.',
}


def _positive_price(value, label: str, required: bool = True) -> Optional[float]:
    if value is None or value == '':
        if required:
            raise InvalidPrediction(f"{label} is required")
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise InvalidPrediction(f"{label} must be a number")
    if price <= 0:
        raise InvalidPrediction(f"{label} must be positive")
    return price


def _existing_bet(fid: int, coin_id: str, challenge_type: str, round_id: str) -> Optional[Prediction]:
    return Prediction.query.filter_by(
        fid=fid, coin_id=coin_id, challenge_type=challenge_type, round_id=round_id
    ).first()


def _is_round_conflict(exc: IntegrityError) -> bool:
    # PostgreSQL names the constraint, SQLite lists its columns
    message = str(exc.orig)
    return ROUND_CONSTRAINT in message or ROUND_CONSTRAINT_COLUMNS in message


def submit_prediction(fid: int, coin_id: str, challenge_type: str, direction: str, start_price,
                      predicted_price=None, username: Optional[str] = None,
                      display_name: Optional[str] = None, pfp_url: Optional[str] = None,
                      now: Optional[int] = None) -> tuple[Prediction, rounds.RoundInfo]:
    """Place a bet on the currently open round of ``challenge_type``."""
    if coin_id not in COIN_IDS:
        raise InvalidPrediction(f"Unsupported coin: {coin_id!r}")
    rounds.validate_challenge_type(challenge_type)
    if direction not in DIRECTIONS:
        raise InvalidPrediction("Direction must be 'up' or 'down'")
    start = _positive_price(start_price, 'start_price')
    exact = _positive_price(predicted_price, 'predicted_price', required=False)

    now = rounds.now_ms() if now is None else int(now)
    # Lockouts depend on the wall clock, evaluate them on every submission
    if rounds.is_challenge_locked(challenge_type, now):
        raise ChallengeLocked(LOCKED_MESSAGES[challenge_type])

    round_info = rounds.get_current_round(challenge_type, now)
    if _existing_bet(fid, coin_id, challenge_type, round_info.round_id):
        raise DuplicateRoundPrediction(DUPLICATE_MESSAGES[challenge_type])

    try:
        stats = get_or_create_stats(fid, username, display_name, pfp_url)
        prediction = Prediction(
            fid=fid,
            coin_id=coin_id,
            challenge_type=challenge_type,
            direction=direction,
            start_price=start,
            predicted_price=exact,
            timestamp=now,
            expires_at=round_info.end_time,
            round_id=round_info.round_id,
            round_start_time=round_info.start_time,
            round_end_time=round_info.end_time,
            status='pending',
        )
        stats.pending_predictions += 1
        stats.last_prediction_at = now
        db.session.add(prediction)
        db.session.add(stats)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        # Lost a race with a concurrent submission for the same round
        if _is_round_conflict(exc):
            raise DuplicateRoundPrediction(DUPLICATE_MESSAGES[challenge_type])
        raise
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        f"[predict] fid={fid} coin={coin_id} type={challenge_type} direction={direction} "
        f"round={round_info.round_id} start_price={start}"
    )
    return prediction, round_info


def get_user_predictions(fid: int, limit: int = 10) -> list[Prediction]:
    return (
        Prediction.query
        .filter_by(fid=fid)
        .order_by(Prediction.timestamp.desc(), Prediction.id.desc())
        .limit(limit)
        .all()
    )


def get_active_prediction(fid: int, now: Optional[int] = None) -> Optional[Prediction]:
    now = rounds.now_ms() if now is None else int(now)
    return (
        Prediction.query
        .filter(Prediction.fid == fid, Prediction.status == 'pending', Prediction.expires_at > now)
        .order_by(Prediction.timestamp.desc(), Prediction.id.desc())
        .first()
    )
