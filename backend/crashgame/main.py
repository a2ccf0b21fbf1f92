from flask import Blueprint, jsonify
from crashgame import get_engine

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the crash game server!'})


@main.route('/health')
def health():
    engine = get_engine()
    return jsonify({
        'status': 'ok',
        'engine_started': engine.started,
        'phase': engine.round.phase if engine.round else None,
    })
