from flask import Blueprint, jsonify, request, current_app
from predictx.services.game.errors import RewardAlreadyClaimed, UnknownUser
from predictx.services.game.rewards import claim_daily_reward
from predictx.services.game.stats import LEADERBOARD_TYPES, get_leaderboard, get_stats, user_rank


stats = Blueprint('stats', __name__)


@stats.route('/stats/<int:fid>', methods=['GET'])
def user_stats(fid):
    row = get_stats(fid)
    if not row:
        # New users have no stats until their first prediction
        return jsonify(None)
    payload = row.to_dict()
    payload['rank'] = user_rank(fid)
    return jsonify(payload)


@stats.route('/leaderboard', methods=['GET'])
@stats.route('/leaderboard/<string:board>', methods=['GET'])
def leaderboard(board=None):
    board = board or request.args.get('type') or 'total'
    if board not in LEADERBOARD_TYPES:
        return jsonify({'error': f'Unknown leaderboard type: {board}'}), 400
    max_limit = int(current_app.config.get('LEADERBOARD_MAX_LIMIT', 100))
    try:
        limit = int(request.args.get('limit', max_limit))
    except (TypeError, ValueError):
        limit = max_limit
    limit = max(1, min(limit, max_limit))
    return jsonify(get_leaderboard(board, limit))


@stats.route('/rank/<int:fid>', methods=['GET'])
def rank(fid):
    return jsonify({'fid': fid, 'rank': user_rank(fid)})


@stats.route('/daily-reward/claim', methods=['POST'])
def daily_reward_claim():
    data = request.get_json(silent=True) or {}
    try:
        fid = int(data.get('fid'))
    except (TypeError, ValueError):
        return jsonify({'error': 'fid is required'}), 400
    try:
        result = claim_daily_reward(fid)
    except UnknownUser:
        return jsonify({'error': 'User not found'}), 404
    except RewardAlreadyClaimed as exc:
        return jsonify({'error': str(exc)}), 400
    return jsonify(result)
