from decimal import Decimal

from crashgame import get_engine, socketio
from crashgame.services.crash.rounds import RUNNING


def _events(test_client, name):
    return [pkt['args'][0] for pkt in test_client.get_received('/ws') if pkt['name'] == name]


def test_socket_connect_sends_identity_and_balance(sio_client):
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')
    received = sio_client.get_received('/ws')
    init = [pkt['args'][0] for pkt in received if pkt['name'] == 'init']
    assert init == [{'username': 'alice', 'balance': 1000.0}]
    assert any(pkt['name'] == 'game_state' for pkt in received)


def test_ping(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    assert _events(sio_client, 'pong') == [{'n': 1}]


def test_place_and_cancel_bet_over_socket(flask_app, sio_client):
    engine = get_engine(flask_app)
    engine.start()
    sio_client.get_received('/ws')

    sio_client.emit('place_bet', {'amount': 25, 'auto_cashout': 2.5}, namespace='/ws')
    received = sio_client.get_received('/ws')
    ok = [pkt['args'][0] for pkt in received if pkt['name'] == 'bet_ok']
    assert ok[0]['action'] == 'place_bet'
    assert ok[0]['bet']['amount'] == 25.0
    states = [pkt['args'][0] for pkt in received if pkt['name'] == 'game_state']
    assert states[-1]['bets'][0]['player_id'] == 'alice'
    assert states[-1]['balances'] == {'alice': 975.0}

    sio_client.emit('cancel_bet', {}, namespace='/ws')
    ok = _events(sio_client, 'bet_ok')
    assert ok == [{'action': 'cancel_bet', 'refunded': 25.0}]
    assert engine.bets.bets == []
    assert engine.settlement.accounts.get_balance('alice') == Decimal('1000.00')


def test_errors_reach_only_the_issuing_player(flask_app, sio_client):
    engine = get_engine(flask_app)
    engine.start()
    bob = socketio.test_client(flask_app, namespace='/ws', auth={'username': 'bob'})
    try:
        sio_client.get_received('/ws')
        bob.get_received('/ws')

        sio_client.emit('cash_out', {}, namespace='/ws')
        errors = _events(sio_client, 'bet_error')
        assert errors and errors[0]['action'] == 'cash_out'
        assert _events(bob, 'bet_error') == []

        bob.emit('place_bet', {'amount': 5000}, namespace='/ws')
        errors = _events(bob, 'bet_error')
        assert errors == [{'action': 'place_bet', 'message': 'Insufficient balance'}]
        assert _events(sio_client, 'bet_error') == []
    finally:
        bob.disconnect(namespace='/ws')


def test_manual_cash_out_over_socket(flask_app, sio_client):
    engine = get_engine(flask_app)
    # Zero seed: every tier crashes well above 1.01
    engine.generator.seed_source = lambda: '0' * 64
    engine.start()
    sio_client.emit('place_bet', {'amount': 10}, namespace='/ws')
    assert engine.scheduler.run_until(lambda: engine.round.phase == RUNNING)
    engine.scheduler.step()
    sio_client.get_received('/ws')

    sio_client.emit('cash_out', {}, namespace='/ws')
    ok = _events(sio_client, 'bet_ok')
    assert ok == [{'action': 'cash_out', 'multiplier': 1.01, 'amount': 10.1}]
    assert engine.settlement.accounts.get_balance('alice') == Decimal('1000.10')


def test_disconnect_unregisters_player(flask_app, sio_client):
    engine = get_engine(flask_app)
    assert engine.connected_ids() == ['alice']
    sio_client.disconnect(namespace='/ws')
    assert engine.connected_ids() == []
