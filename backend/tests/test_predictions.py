import pytest
from sqlalchemy.exc import IntegrityError

from predictx import db
from predictx.models import Prediction, UserStats
from predictx.services.game import predictions
from predictx.services.game.errors import DuplicateRoundPrediction
from predictx.services.game.predictions import submit_prediction
from conftest import utc_ms

START = utc_ms(2025, 3, 10, 12, 1)


def test_round_constraint_catches_concurrent_duplicate(flask_app, monkeypatch):
    submit_prediction(90, 'bitcoin', 'quick', 'up', 100.0, now=START)
    # the other request passed the pre-check before our row was committed
    monkeypatch.setattr(predictions, '_existing_bet', lambda *args: None)

    with pytest.raises(DuplicateRoundPrediction):
        submit_prediction(90, 'bitcoin', 'quick', 'down', 100.0, now=START + 1000)

    assert Prediction.query.filter_by(fid=90).count() == 1
    assert db.session.get(UserStats, 90).pending_predictions == 1


def test_stats_conflict_is_not_reported_as_duplicate_bet(flask_app, monkeypatch):
    submit_prediction(91, 'bitcoin', 'quick', 'up', 100.0, now=START)
    db.session.expunge_all()

    def racing_stats(fid, *args):
        # a concurrent first bet already inserted this user's stats row
        stats = UserStats(fid=fid, username=f"user{fid}", display_name=f"User {fid}")
        stats.badge_list = []
        db.session.add(stats)
        return stats

    monkeypatch.setattr(predictions, 'get_or_create_stats', racing_stats)
    with pytest.raises(IntegrityError):
        submit_prediction(91, 'ethereum', 'quick', 'up', 2600.0, now=START)

    assert Prediction.query.filter_by(fid=91, coin_id='ethereum').count() == 0
