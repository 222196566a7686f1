"""Resolve expired predictions.

Settling a prediction touches two rows, the prediction and its owner's
stats. Both are written in a single commit so a failure can never leave a
prediction marked won/lost without the matching stats update (or the
reverse).

The pending -> won/lost transition is claimed with a conditional UPDATE
(``WHERE status = 'pending'``). When two workers race on the same row only
one of them matches; the other gets PredictionAlreadySettled and rolls back.
"""
from typing import Optional

from flask import current_app

from predictx import db, socketio
from predictx.models import Prediction
from . import rounds
from .badges import check_for_new_badges
from .errors import PredictionAlreadySettled, PredictionNotDue
from .scoring import calculate_total_score, get_score_breakdown
from .stats import get_or_create_stats, user_rank


def _settled_guess_count(fid: int) -> int:
    return Prediction.query.filter(
        Prediction.fid == fid,
        Prediction.status != 'pending',
        Prediction.predicted_price.isnot(None),
    ).count()


def _apply_result_to_stats(stats, prediction: Prediction, result) -> None:
    stats.pending_predictions = max(0, stats.pending_predictions - 1)
    stats.total_predictions += 1
    if prediction.challenge_type == 'quick':
        stats.quick_predictions += 1
    else:
        stats.big_predictions += 1

    if result.is_win:
        stats.won_predictions += 1
        stats.current_streak += 1
        stats.longest_streak = max(stats.longest_streak, stats.current_streak)
        stats.total_score += result.total_score
        if prediction.challenge_type == 'quick':
            stats.quick_score += result.total_score
        else:
            stats.big_score += result.total_score
    else:
        stats.lost_predictions += 1
        stats.current_streak = 0

    stats.win_rate = stats.won_predictions / stats.total_predictions * 100

    # Only bets with an exact price guess carry an accuracy
    if prediction.predicted_price is not None:
        samples = _settled_guess_count(stats.fid)
        previous_total = stats.average_accuracy * (samples - 1)
        stats.average_accuracy = (previous_total + result.accuracy) / samples


def settle_prediction(prediction: Prediction, end_price: float, now: Optional[int] = None) -> dict:
    """Settle one pending prediction at ``end_price`` and commit.

    Returns a summary dict. Raises PredictionNotDue before the round has
    closed and PredictionAlreadySettled when the prediction has already
    left the pending state, here or in another transaction.
    """
    now = rounds.now_ms() if now is None else int(now)
    if not prediction.is_pending:
        raise PredictionAlreadySettled(f"Prediction {prediction.id} is already {prediction.status}")
    if prediction.expires_at > now:
        raise PredictionNotDue(f"Prediction {prediction.id} is not due until {prediction.expires_at}")

    try:
        stats = get_or_create_stats(prediction.fid)
        result = calculate_total_score(
            prediction.challenge_type,
            prediction.direction,
            prediction.start_price,
            end_price,
            stats.current_streak,
            prediction.predicted_price,
        )

        outcome = {
            'status': 'won' if result.is_win else 'lost',
            'end_price': end_price,
            'score': result.total_score,
            'accuracy': result.accuracy,
            'streak_multiplier': result.streak_multiplier,
            'streak_bonus': result.streak_bonus,
            'settled_at': now,
        }
        claimed = (
            Prediction.query
            .filter(Prediction.id == prediction.id, Prediction.status == 'pending')
            .update(outcome, synchronize_session=False)
        )
        if not claimed:
            raise PredictionAlreadySettled(f"Prediction {prediction.id} was settled elsewhere")
        for key, value in outcome.items():
            setattr(prediction, key, value)
        db.session.add(prediction)

        _apply_result_to_stats(stats, prediction, result)
        db.session.add(stats)
        db.session.flush()
        stats.rank = user_rank(stats.fid)

        new_badges = check_for_new_badges(stats, now)
        if new_badges:
            stats.badge_list = stats.badge_list + new_badges

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    summary = {
        'prediction_id': prediction.id,
        'fid': prediction.fid,
        'status': prediction.status,
        'is_win': result.is_win,
        'score': result.total_score,
        'breakdown': get_score_breakdown(result),
        'end_price': end_price,
        'current_streak': stats.current_streak,
        'new_badges': [b['type'] for b in new_badges],
    }
    current_app.logger.info(
        f"[settle] prediction={prediction.id} fid={prediction.fid} status={prediction.status} "
        f"score={result.total_score} streak={stats.current_streak}"
    )
    socketio.emit('prediction_settled', summary, to=f"user:{prediction.fid}", namespace='/ws')
    return summary


def _due_filter(now: int):
    return (Prediction.status == 'pending', Prediction.expires_at <= now)


def due_predictions(limit: int, now: Optional[int] = None, coin_ids=None) -> list[Prediction]:
    """Oldest-expiry-first pending predictions whose round has closed.

    ``coin_ids`` restricts the batch to coins the caller can price, so
    unpriced rows never take up the ``limit``.
    """
    now = rounds.now_ms() if now is None else int(now)
    query = Prediction.query.filter(*_due_filter(now))
    if coin_ids is not None:
        query = query.filter(Prediction.coin_id.in_(list(coin_ids)))
    return (
        query
        .order_by(Prediction.expires_at.asc(), Prediction.id.asc())
        .limit(limit)
        .all()
    )


def unpriced_due_counts(coin_ids, now: Optional[int] = None) -> dict:
    """Number of due pending predictions per coin missing from ``coin_ids``."""
    now = rounds.now_ms() if now is None else int(now)
    rows = (
        db.session.query(Prediction.coin_id, db.func.count(Prediction.id))
        .filter(*_due_filter(now))
        .filter(Prediction.coin_id.notin_(list(coin_ids)))
        .group_by(Prediction.coin_id)
        .order_by(Prediction.coin_id)
        .all()
    )
    return {coin_id: count for coin_id, count in rows}


def settle_due_predictions(prices: dict, limit: int = 10, now: Optional[int] = None) -> dict:
    """Settle up to ``limit`` expired pending predictions.

    ``prices`` maps coin id to the settlement price. Only coins with a price
    are picked up; due predictions for other coins are left pending, counted
    in ``skipped`` and reported once per coin in ``errors``.
    """
    now = rounds.now_ms() if now is None else int(now)
    checked = 0
    results = []
    errors = []

    unpriced = unpriced_due_counts(prices.keys(), now)
    for coin_id, count in unpriced.items():
        errors.append(f"No price supplied for {coin_id}")
        current_app.logger.info(f"[settle-skip] {count} due prediction(s) missing price for {coin_id}")

    for prediction in due_predictions(limit, now, coin_ids=prices.keys()):
        checked += 1
        try:
            results.append(settle_prediction(prediction, prices[prediction.coin_id], now))
        except PredictionAlreadySettled as exc:
            errors.append(str(exc))
        except Exception as exc:
            current_app.logger.exception(f"[settle-error] prediction={prediction.id}")
            errors.append(f"Prediction {prediction.id}: {exc}")

    return {
        'checked': checked,
        'resolved': len(results),
        'skipped': sum(unpriced.values()),
        'results': results,
        'errors': errors,
        'timestamp': now,
    }
