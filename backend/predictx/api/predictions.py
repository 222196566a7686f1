from flask import Blueprint, jsonify, request, current_app
from predictx import socketio
from predictx.services.game import rounds
from predictx.services.game.errors import GameRuleError
from predictx.services.game.predictions import (
    get_active_prediction,
    get_user_predictions,
    submit_prediction,
)
from predictx.services.game.settlement import settle_due_predictions


predictions = Blueprint('predictions', __name__)


def _int_arg(name: str, default: int, maximum: int) -> int:
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        value = default
    return max(1, min(value, maximum))


@predictions.route('/predict', methods=['POST'])
def create_prediction():
    data = request.get_json(silent=True) or {}
    fid = data.get('fid')
    coin_id = data.get('coin_id') or data.get('crypto_id')
    challenge_type = data.get('challenge_type')
    direction = data.get('direction')
    start_price = data.get('start_price')

    if not all([fid, coin_id, challenge_type, direction, start_price]):
        return jsonify({'error': 'Missing required fields'}), 400
    try:
        fid = int(fid)
    except (TypeError, ValueError):
        return jsonify({'error': 'fid must be an integer'}), 400

    try:
        prediction, round_info = submit_prediction(
            fid,
            coin_id,
            challenge_type,
            direction,
            start_price,
            predicted_price=data.get('predicted_price'),
            username=data.get('username'),
            display_name=data.get('display_name'),
            pfp_url=data.get('pfp_url'),
        )
    except GameRuleError as exc:
        return jsonify({'error': str(exc)}), 400

    socketio.emit('prediction_created', prediction.to_dict(), to=f"user:{fid}", namespace='/ws')
    return jsonify({
        'prediction': prediction.to_dict(),
        'round': round_info.to_dict(),
        'message': 'Prediction submitted successfully',
    }), 201


@predictions.route('/user/<int:fid>/predictions', methods=['GET'])
def list_user_predictions(fid):
    limit = _int_arg('limit', 10, int(current_app.config.get('HISTORY_MAX_LIMIT', 50)))
    return jsonify([p.to_dict() for p in get_user_predictions(fid, limit)])


@predictions.route('/user/<int:fid>/active', methods=['GET'])
def active_prediction(fid):
    prediction = get_active_prediction(fid)
    return jsonify(prediction.to_dict() if prediction else None)


@predictions.route('/round/<string:challenge_type>', methods=['GET'])
def round_info(challenge_type):
    try:
        info = rounds.get_current_round(challenge_type)
        locked = rounds.is_challenge_locked(challenge_type)
    except GameRuleError as exc:
        return jsonify({'error': str(exc)}), 400
    payload = info.to_dict()
    payload['challenge_type'] = challenge_type
    payload['time_remaining_formatted'] = rounds.format_time_remaining(info.time_remaining)
    payload['is_locked'] = locked
    payload['previous_round_id'] = rounds.get_previous_round_id(challenge_type)
    return jsonify(payload)


@predictions.route('/check-results', methods=['POST'])
def check_results():
    data = request.get_json(silent=True) or {}
    raw_prices = data.get('prices')
    if not isinstance(raw_prices, dict) or not raw_prices:
        return jsonify({'error': 'prices must map coin ids to settlement prices'}), 400

    prices = {}
    for coin_id, value in raw_prices.items():
        try:
            price = float(value)
        except (TypeError, ValueError):
            return jsonify({'error': f'Invalid price for {coin_id}'}), 400
        if price <= 0:
            return jsonify({'error': f'Price for {coin_id} must be positive'}), 400
        prices[coin_id] = price

    cfg = current_app.config
    try:
        limit = int(data.get('limit') or cfg.get('CHECK_RESULTS_DEFAULT_LIMIT', 10))
    except (TypeError, ValueError):
        return jsonify({'error': 'limit must be an integer'}), 400
    limit = max(1, min(limit, int(cfg.get('CHECK_RESULTS_MAX_LIMIT', 50))))

    report = settle_due_predictions(prices, limit=limit)
    current_app.logger.info(f"[check-results] checked={report['checked']} resolved={report['resolved']}")
    return jsonify(report)
