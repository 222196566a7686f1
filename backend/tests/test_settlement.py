import pytest

from predictx import db
from predictx.models import Prediction, UserStats
from predictx.services.game import settlement
from predictx.services.game.badges import check_for_new_badges
from predictx.services.game.errors import PredictionAlreadySettled, PredictionNotDue
from predictx.services.game.predictions import submit_prediction
from predictx.services.game.settlement import settle_due_predictions, settle_prediction
from conftest import utc_ms

FIVE_MIN = 5 * 60 * 1000
START = utc_ms(2025, 3, 10, 12, 1)


def _quick_bet(fid, now, direction='up', start_price=100.0, **kwargs):
    prediction, _ = submit_prediction(fid, 'bitcoin', 'quick', direction, start_price, now=now, **kwargs)
    return prediction


def test_win_streak_scoring_and_badges(flask_app):
    expected_scores = [50, 50, 75, 75, 100, 100, 100, 100, 100, 200]
    now = START
    for expected in expected_scores:
        prediction = _quick_bet(7, now)
        summary = settle_prediction(prediction, 101.0, now + FIVE_MIN)
        assert summary['score'] == expected
        now += FIVE_MIN

    stats = db.session.get(UserStats, 7)
    assert stats.current_streak == 10
    assert stats.longest_streak == 10
    assert stats.total_score == sum(expected_scores)
    assert stats.quick_score == sum(expected_scores)
    assert stats.won_predictions == 10
    assert stats.pending_predictions == 0
    earned = [b['type'] for b in stats.badge_list]
    for badge in ('first_prediction', 'legend', 'streak_3', 'streak_5', 'streak_7', 'streak_10'):
        assert badge in earned
    assert len(earned) == len(set(earned))

    # a loss resets the current streak but keeps the record
    prediction = _quick_bet(7, now, direction='down')
    summary = settle_prediction(prediction, 101.0, now + FIVE_MIN)
    assert summary['score'] == 0
    assert summary['status'] == 'lost'
    db.session.refresh(stats)
    assert stats.current_streak == 0
    assert stats.longest_streak == 10
    assert stats.lost_predictions == 1
    assert stats.total_predictions == 11


def test_settled_prediction_fields(flask_app):
    prediction = _quick_bet(8, START, predicted_price=110.0)
    settle_prediction(prediction, 100.5, START + FIVE_MIN)
    row = db.session.get(Prediction, prediction.id)
    assert row.status == 'won'
    assert row.end_price == 100.5
    assert row.score == 50
    assert row.accuracy == pytest.approx(90.55)
    assert row.streak_multiplier == 1.0
    assert row.settled_at == START + FIVE_MIN
    stats = db.session.get(UserStats, 8)
    assert stats.average_accuracy == pytest.approx(90.55)


def test_status_transition_is_one_way(flask_app):
    prediction = _quick_bet(9, START)
    settle_prediction(prediction, 101.0, START + FIVE_MIN)
    with pytest.raises(PredictionAlreadySettled):
        settle_prediction(prediction, 99.0, START + FIVE_MIN)
    assert db.session.get(UserStats, 9).total_predictions == 1


def test_failed_settlement_rolls_back_both_writes(flask_app, monkeypatch):
    prediction = _quick_bet(10, START)
    prediction_id = prediction.id

    def boom(*args, **kwargs):
        raise RuntimeError('badge store unavailable')

    monkeypatch.setattr(settlement, 'check_for_new_badges', boom)
    with pytest.raises(RuntimeError):
        settle_prediction(prediction, 101.0, START + FIVE_MIN)

    row = db.session.get(Prediction, prediction_id)
    stats = db.session.get(UserStats, 10)
    assert row.status == 'pending'
    assert row.end_price is None
    assert stats.total_predictions == 0
    assert stats.current_streak == 0
    assert stats.pending_predictions == 1
    assert stats.total_score == 0


def test_settle_due_respects_limit_and_expiry_order(flask_app):
    for fid in range(20, 25):
        _quick_bet(fid, START)
    later = _quick_bet(30, START + FIVE_MIN)

    report = settle_due_predictions({'bitcoin': 101.0}, limit=3, now=START + FIVE_MIN)
    assert report['checked'] == 3
    assert report['resolved'] == 3
    assert later.status == 'pending'

    report = settle_due_predictions({'bitcoin': 101.0}, limit=10, now=START + FIVE_MIN)
    assert report['resolved'] == 2
    assert db.session.get(Prediction, later.id).status == 'pending'

    report = settle_due_predictions({'bitcoin': 101.0}, limit=10, now=START + 2 * FIVE_MIN)
    assert report['resolved'] == 1


def test_badges_are_not_reawarded(flask_app):
    stats = UserStats(fid=50, username='u', display_name='U')
    stats.total_predictions = 1
    stats.current_streak = 5
    stats.rank = 4
    stats.badge_list = []
    first = [b['type'] for b in check_for_new_badges(stats, now=START)]
    assert first == ['first_prediction', 'streak_5', 'top_10']

    stats.badge_list = check_for_new_badges(stats, now=START)
    second = [b['type'] for b in check_for_new_badges(stats, now=START)]
    assert second == ['streak_3', 'top_100']


def test_unranked_user_gets_no_rank_badge(flask_app):
    stats = UserStats(fid=51, username='u', display_name='U')
    stats.badge_list = []
    assert check_for_new_badges(stats, now=START) == []


def test_settle_due_cli_command(flask_app):
    _quick_bet(60, START)
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['settle-due', '--price', 'bitcoin=50'])
    assert result.exit_code == 0
    assert 'Checked' in result.output

    bad = runner.invoke(args=['settle-due', '--price', 'bitcoin'])
    assert bad.exit_code != 0


def test_row_settled_by_another_worker_is_not_settled_again(flask_app):
    prediction = _quick_bet(12, START)
    db.session.refresh(prediction)
    db.session.expunge(prediction)
    # another worker resolves the row after we loaded it
    db.session.execute(
        db.text("UPDATE prediction SET status = 'lost', end_price = 99.0 WHERE id = :id"),
        {'id': prediction.id},
    )
    db.session.commit()
    assert prediction.status == 'pending'

    with pytest.raises(PredictionAlreadySettled):
        settle_prediction(prediction, 101.0, START + FIVE_MIN)

    row = db.session.get(Prediction, prediction.id)
    assert row.status == 'lost'
    assert row.end_price == 99.0
    stats = db.session.get(UserStats, 12)
    assert stats.total_predictions == 0
    assert stats.won_predictions == 0
    assert stats.pending_predictions == 1
    assert stats.badge_list == []


def test_settle_due_reports_row_settled_elsewhere(flask_app, monkeypatch):
    prediction = _quick_bet(13, START)
    prediction_id = prediction.id
    original = settlement.due_predictions

    def stale_batch(*args, **kwargs):
        rows = original(*args, **kwargs)
        for row in rows:
            db.session.refresh(row)
            db.session.expunge(row)
        db.session.execute(
            db.text("UPDATE prediction SET status = 'won' WHERE id = :id"), {'id': prediction_id}
        )
        db.session.commit()
        return rows

    monkeypatch.setattr(settlement, 'due_predictions', stale_batch)
    report = settle_due_predictions({'bitcoin': 101.0}, now=START + FIVE_MIN)
    assert report['checked'] == 1
    assert report['resolved'] == 0
    assert report['errors'] == [f"Prediction {prediction_id} was settled elsewhere"]
    assert db.session.get(UserStats, 13).total_predictions == 0


def test_unpriced_coins_do_not_block_the_batch(flask_app):
    for fid in (70, 71, 72):
        submit_prediction(fid, 'ethereum', 'quick', 'up', 2600.0, now=START)
    newer = _quick_bet(73, START + FIVE_MIN)

    report = settle_due_predictions({'bitcoin': 101.0}, limit=3, now=START + 2 * FIVE_MIN)
    assert report['checked'] == 1
    assert report['resolved'] == 1
    assert report['skipped'] == 3
    assert report['errors'] == ['No price supplied for ethereum']
    assert report['results'][0]['fid'] == 73
    assert db.session.get(Prediction, newer.id).status == 'won'

    again = settle_due_predictions({'bitcoin': 101.0}, limit=3, now=START + 2 * FIVE_MIN)
    assert again['checked'] == 0
    assert again['skipped'] == 3
    assert Prediction.query.filter_by(coin_id='ethereum', status='pending').count() == 3


def test_prediction_cannot_settle_before_its_round_closes(flask_app):
    prediction = _quick_bet(14, START)
    with pytest.raises(PredictionNotDue):
        settle_prediction(prediction, 101.0, prediction.expires_at - 1)
    assert db.session.get(Prediction, prediction.id).status == 'pending'
    assert db.session.get(UserStats, 14).total_predictions == 0

    summary = settle_prediction(prediction, 101.0, prediction.expires_at)
    assert summary['status'] == 'won'


def test_average_accuracy_ignores_bets_without_a_guess(flask_app):
    first = _quick_bet(15, START, predicted_price=110.0)
    settle_prediction(first, 100.5, START + FIVE_MIN)
    assert db.session.get(UserStats, 15).average_accuracy == pytest.approx(90.55)

    # up/down-only bet leaves the average alone
    second = _quick_bet(15, START + FIVE_MIN)
    settle_prediction(second, 101.0, START + 2 * FIVE_MIN)
    assert db.session.get(UserStats, 15).average_accuracy == pytest.approx(90.55)

    third = _quick_bet(15, START + 2 * FIVE_MIN, predicted_price=100.0)
    settle_prediction(third, 100.0, START + 3 * FIVE_MIN)
    stats = db.session.get(UserStats, 15)
    assert stats.total_predictions == 3
    assert stats.average_accuracy == pytest.approx((90.55 + 100.0) / 2)
