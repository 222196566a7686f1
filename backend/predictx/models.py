from predictx import db
import json
import time


def now_ms() -> int:
    return int(time.time() * 1000)


class Prediction(db.Model):
    __tablename__ = 'prediction'
    __table_args__ = (
        db.UniqueConstraint('fid', 'coin_id', 'challenge_type', 'round_id', name='uq_prediction_user_round'),
    )
    id = db.Column(db.Integer, primary_key=True)
    fid = db.Column(db.Integer, nullable=False, index=True)
    coin_id = db.Column(db.String(20), nullable=False)  # bitcoin, ethereum
    challenge_type = db.Column(db.String(10), nullable=False)  # quick, big
    direction = db.Column(db.String(10), nullable=False)  # up, down

    start_price = db.Column(db.Float, nullable=False)
    predicted_price = db.Column(db.Float, nullable=True)
    end_price = db.Column(db.Float, nullable=True)

    timestamp = db.Column(db.BigInteger, nullable=False, default=now_ms)
    expires_at = db.Column(db.BigInteger, nullable=False, index=True)

    round_id = db.Column(db.String(50), nullable=False)
    round_start_time = db.Column(db.BigInteger, nullable=True)
    round_end_time = db.Column(db.BigInteger, nullable=True)

    status = db.Column(db.String(20), nullable=False, default='pending', index=True)  # pending, won, lost
    score = db.Column(db.Integer, nullable=False, default=0)
    accuracy = db.Column(db.Float, nullable=False, default=0.0)
    streak_multiplier = db.Column(db.Float, nullable=False, default=1.0)
    streak_bonus = db.Column(db.Integer, nullable=False, default=0)
    settled_at = db.Column(db.BigInteger, nullable=True)

    @property
    def is_pending(self):
        return self.status == 'pending'

    def to_dict(self):
        return {
            'id': self.id,
            'fid': self.fid,
            'coin_id': self.coin_id,
            'challenge_type': self.challenge_type,
            'direction': self.direction,
            'start_price': self.start_price,
            'predicted_price': self.predicted_price,
            'end_price': self.end_price,
            'timestamp': self.timestamp,
            'expires_at': self.expires_at,
            'round_id': self.round_id,
            'round_start_time': self.round_start_time,
            'round_end_time': self.round_end_time,
            'status': self.status,
            'score': self.score,
            'accuracy': self.accuracy,
            'streak_multiplier': self.streak_multiplier,
            'streak_bonus': self.streak_bonus,
            'settled_at': self.settled_at,
        }


class UserStats(db.Model):
    __tablename__ = 'user_stats'
    fid = db.Column(db.Integer, primary_key=True, autoincrement=False)
    username = db.Column(db.String(64), nullable=False)
    display_name = db.Column(db.String(128), nullable=False)
    pfp_url = db.Column(db.Text, nullable=True)

    total_score = db.Column(db.Integer, nullable=False, default=0)
    quick_score = db.Column(db.Integer, nullable=False, default=0)
    big_score = db.Column(db.Integer, nullable=False, default=0)

    total_predictions = db.Column(db.Integer, nullable=False, default=0)
    quick_predictions = db.Column(db.Integer, nullable=False, default=0)
    big_predictions = db.Column(db.Integer, nullable=False, default=0)
    won_predictions = db.Column(db.Integer, nullable=False, default=0)
    lost_predictions = db.Column(db.Integer, nullable=False, default=0)
    pending_predictions = db.Column(db.Integer, nullable=False, default=0)

    win_rate = db.Column(db.Float, nullable=False, default=0.0)
    average_accuracy = db.Column(db.Float, nullable=False, default=0.0)
    current_streak = db.Column(db.Integer, nullable=False, default=0)
    longest_streak = db.Column(db.Integer, nullable=False, default=0)
    rank = db.Column(db.Integer, nullable=False, default=0)

    last_prediction_at = db.Column(db.BigInteger, nullable=True)
    last_daily_reward_at = db.Column(db.BigInteger, nullable=True)
    daily_streak_days = db.Column(db.Integer, nullable=False, default=0)
    badges = db.Column(db.Text, nullable=True)  # JSON-encoded list of badge dicts
    updated_at = db.Column(db.BigInteger, nullable=False, default=now_ms, onupdate=now_ms)

    def __init__(self, **kwargs):
        super(UserStats, self).__init__(**kwargs)
        # Column defaults only apply on flush; services read these before that
        for name in ('total_score', 'quick_score', 'big_score', 'total_predictions',
                     'quick_predictions', 'big_predictions', 'won_predictions',
                     'lost_predictions', 'pending_predictions', 'current_streak',
                     'longest_streak', 'rank', 'daily_streak_days'):
            if getattr(self, name) is None:
                setattr(self, name, 0)
        for name in ('win_rate', 'average_accuracy'):
            if getattr(self, name) is None:
                setattr(self, name, 0.0)

    @property
    def badge_list(self):
        try:
            return json.loads(self.badges) if self.badges else []
        except ValueError:
            return []

    @badge_list.setter
    def badge_list(self, value):
        self.badges = json.dumps(list(value))

    def to_dict(self):
        return {
            'fid': self.fid,
            'username': self.username,
            'display_name': self.display_name,
            'pfp_url': self.pfp_url,
            'total_score': self.total_score,
            'quick_score': self.quick_score,
            'big_score': self.big_score,
            'total_predictions': self.total_predictions,
            'quick_predictions': self.quick_predictions,
            'big_predictions': self.big_predictions,
            'won_predictions': self.won_predictions,
            'lost_predictions': self.lost_predictions,
            'pending_predictions': self.pending_predictions,
            'win_rate': self.win_rate,
            'average_accuracy': self.average_accuracy,
            'current_streak': self.current_streak,
            'longest_streak': self.longest_streak,
            'rank': self.rank,
            'last_prediction_at': self.last_prediction_at,
            'last_daily_reward_at': self.last_daily_reward_at,
            'daily_streak_days': self.daily_streak_days,
            'badges': self.badge_list,
        }

    def to_leaderboard_entry(self, rank: int):
        return {
            'fid': self.fid,
            'username': self.username,
            'display_name': self.display_name,
            'pfp_url': self.pfp_url,
            'total_score': self.total_score,
            'quick_score': self.quick_score,
            'big_score': self.big_score,
            'total_predictions': self.total_predictions,
            'won_predictions': self.won_predictions,
            'win_rate': self.win_rate,
            'current_streak': self.current_streak,
            'longest_streak': self.longest_streak,
            'rank': rank,
        }
