import os
import sys
import random
from decimal import Decimal
import pytest

# Ensure the backend root (containing the `crashgame` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from crashgame import create_app, db, socketio
from crashgame.services.crash.engine import RoundEngine
from crashgame.services.crash.errors import InsufficientFunds
from crashgame.services.crash.fairness import CrashPointGenerator
from crashgame.services.crash.quota import QuotaPool
from crashgame.services.crash.rounds import RUNNING, WAITING, Player
from crashgame.services.crash.scheduler import VirtualScheduler

ZERO_SEED = '0' * 64


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ROUND_SCHEDULER = 'virtual'
    STARTING_BALANCE = '1000.00'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws',
        auth={'username': 'alice'},
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


# ---- in-memory collaborators for engine tests ----

class MemoryLedger:
    def __init__(self, starting_balance='1000.00'):
        self.starting_balance = Decimal(starting_balance)
        self.balances = {}
        self.calls = []

    def get_balance(self, account):
        return self.balances.setdefault(account, self.starting_balance)

    def adjust_balance(self, account, delta):
        delta = Decimal(delta)
        self.calls.append((account, delta))
        new_balance = self.get_balance(account) + delta
        if new_balance < 0:
            raise InsufficientFunds(account, self.balances[account], delta)
        self.balances[account] = new_balance
        return new_balance


class RecordingTransport:
    def __init__(self):
        self.snapshots = []

    def broadcast(self, snapshot):
        self.snapshots.append(snapshot)

    def phases(self):
        return [s['phase'] for s in self.snapshots]

    def crashed(self):
        return [s for s in self.snapshots if s['phase'] == 'crashed']


class FixedCrashPoints(CrashPointGenerator):
    """Hands out the given crash points in order, repeating the last one."""

    def __init__(self, points):
        super().__init__(seed_source=lambda: ZERO_SEED)
        self.points = list(points)
        self.calls = []

    def compute(self, tier, server_seed, scaling_factor, risk_score, bet_count):
        self.calls.append((tier, server_seed, scaling_factor, risk_score, bet_count))
        if len(self.points) > 1:
            return self.points.pop(0)
        return self.points[0]


class EngineHarness:
    def __init__(self, crash_points=(2.5,), ledger=None, generator=None, **kwargs):
        self.ledger = ledger or MemoryLedger()
        self.transport = RecordingTransport()
        self.scheduler = VirtualScheduler()
        self.engine = RoundEngine(
            self.ledger,
            self.transport,
            self.scheduler,
            generator=generator or FixedCrashPoints(crash_points),
            quota_pool=QuotaPool(random.Random(7)),
            **kwargs,
        )

    def join(self, *names):
        players = [Player(name, f"sid-{name}") for name in names]
        for player in players:
            self.engine.connect(player)
        return players if len(players) > 1 else players[0]

    def start(self):
        self.engine.start()
        return self.engine.round

    def run_until_running(self):
        assert self.scheduler.run_until(lambda: self.engine.round.phase == RUNNING)
        return self.engine.round

    def run_until_multiplier(self, value):
        assert self.scheduler.run_until(
            lambda: self.engine.round.phase != RUNNING or self.engine.round.multiplier >= value
        )
        return self.engine.round

    def run_until_round(self, round_id):
        assert self.scheduler.run_until(
            lambda: self.engine.round.id >= round_id and self.engine.round.phase == WAITING
        )
        return self.engine.round


@pytest.fixture()
def harness():
    return EngineHarness()


@pytest.fixture()
def make_harness():
    return EngineHarness
