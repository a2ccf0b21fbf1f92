from flask import current_app, request
from flask_socketio import emit
from crashgame import socketio, get_engine
from crashgame.services.crash.errors import ValidationError
from crashgame.services.crash.rounds import Player
from typing import Dict
import random

NAMESPACE = '/ws'


class SocketIOTransport:
    """Pushes engine snapshots to every client connected on ``/ws``."""

    def __init__(self, sio, namespace: str = NAMESPACE, event: str = 'game_state'):
        self.socketio = sio
        self.namespace = namespace
        self.event = event

    def broadcast(self, snapshot: dict) -> None:
        self.socketio.emit(self.event, snapshot, namespace=self.namespace)


# ---- player identity per socket ----

_sid_to_player: Dict[str, Player] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _current_player() -> Player:
    player = _sid_to_player.get(_get_sid())
    if player is None:
        raise ValidationError('Unknown player')
    return player


def handle_connect(auth=None):
    username = (auth or {}).get('username') if isinstance(auth, dict) else None
    if not username:
        username = request.args.get('username') or f"Player_{random.randint(0, 99999)}"
    player = Player(username, _get_sid())
    _sid_to_player[player.connection_ref] = player
    engine = get_engine()
    balance = engine.connect(player)
    current_app.logger.info(f"[connect] player={player.id} sid={player.connection_ref}")
    emit('init', {'username': player.id, 'balance': float(balance) if balance is not None else None})
    emit('game_state', engine.snapshot())


def handle_disconnect(reason=None):
    player = _sid_to_player.pop(_get_sid(), None)
    if not player:
        return
    get_engine().disconnect(player)
    current_app.logger.info(f"[disconnect] player={player.id} sid={player.connection_ref}")


def _run_command(action: str, command):
    try:
        result = command(_current_player())
    except ValidationError as exc:
        emit('bet_error', {'action': action, 'message': str(exc)})
        return None
    except Exception:
        current_app.logger.exception(f"[command-failed] action={action} sid={_get_sid()}")
        emit('bet_error', {'action': action, 'message': 'Something went wrong!'})
        return None
    return result


def handle_place_bet(data):
    data = data or {}
    auto_cashout = data.get('auto_cashout', data.get('autoCashout'))
    bet = _run_command(
        'place_bet',
        lambda player: get_engine().place_bet(player, data.get('amount'), auto_cashout),
    )
    if bet is not None:
        emit('bet_ok', {'action': 'place_bet', 'bet': bet.to_dict()})


def handle_cancel_bet(data=None):
    bet = _run_command('cancel_bet', lambda player: get_engine().cancel_bet(player))
    if bet is not None:
        emit('bet_ok', {'action': 'cancel_bet', 'refunded': float(bet.amount)})


def handle_cash_out(data=None):
    payout = _run_command('cash_out', lambda player: get_engine().cash_out(player))
    if payout is not None:
        emit('bet_ok', {'action': 'cash_out', 'multiplier': payout.multiplier, 'amount': float(payout.amount)})


def handle_sync(data=None):
    emit('game_state', get_engine().snapshot())


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('place_bet', handle_place_bet, namespace=NAMESPACE)
    socketio.on_event('cancel_bet', handle_cancel_bet, namespace=NAMESPACE)
    socketio.on_event('cash_out', handle_cash_out, namespace=NAMESPACE)
    socketio.on_event('sync', handle_sync, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
