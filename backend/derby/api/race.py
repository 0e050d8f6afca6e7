from flask import Blueprint, current_app, jsonify

from derby import get_engine

race = Blueprint('race', __name__)


@race.route('/state', methods=['GET'])
def get_race_state():
    """
    Returns the public race snapshot: players, lane progress and finish order.
    """
    payload = get_engine(current_app).snapshot()
    payload.pop('myId', None)
    payload.pop('isHost', None)
    return jsonify(payload), 200
