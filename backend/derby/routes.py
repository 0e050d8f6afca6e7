from flask import Blueprint, current_app, jsonify

from derby import get_engine

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the trivia derby race server!'})


@main.route('/health')
def health():
    engine = get_engine(current_app)
    tiers = engine.bank.tiers()
    return jsonify({
        'status': 'ok' if sum(tiers.values()) else 'degraded',
        'state': engine.state.value,
        'players': engine.registry.count(),
        'questions': {str(t): n for t, n in tiers.items()},
    }), 200
