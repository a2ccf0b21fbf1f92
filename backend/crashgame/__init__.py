from decimal import Decimal
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from werkzeug.exceptions import HTTPException
import click
from crashgame.config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def build_round_engine(flask_app, scheduler=None):
    """Wire the round engine to the SQL ledger, the archive and Socket.IO."""
    from crashgame.services.accounts import AccountLedger
    from crashgame.services.archive import RoundArchive
    from crashgame.services.crash.engine import RoundEngine
    from crashgame.services.crash.fairness import CrashPointGenerator, PunishmentPolicy
    from crashgame.services.crash.risk import RiskScorer
    from crashgame.services.crash.scheduler import SocketIOScheduler, VirtualScheduler
    from crashgame.socketio_events import SocketIOTransport

    cfg = flask_app.config
    if scheduler is None:
        if cfg.get('ROUND_SCHEDULER') == 'virtual':
            scheduler = VirtualScheduler()
        else:
            scheduler = SocketIOScheduler(socketio, logger=flask_app.logger)

    policy = PunishmentPolicy(
        threshold=float(cfg.get('PUNISHMENT_THRESHOLD', 0.6)),
        slope=float(cfg.get('PUNISHMENT_SLOPE', 0.7)),
    )
    return RoundEngine(
        accounts=AccountLedger(flask_app, Decimal(str(cfg.get('STARTING_BALANCE', '1000.00')))),
        transport=SocketIOTransport(socketio),
        scheduler=scheduler,
        generator=CrashPointGenerator(policy),
        risk_scorer=RiskScorer(
            risky_cashout=float(cfg.get('RISKY_AUTO_CASHOUT', 1.05)),
            loss_normalizer=float(cfg.get('LOSS_NORMALIZER', 500)),
        ),
        archive=RoundArchive(flask_app),
        logger=flask_app.logger,
        countdown=int(cfg.get('WAITING_COUNTDOWN_SEC', 5)),
        countdown_tick=float(cfg.get('COUNTDOWN_TICK_SEC', 1)),
        running_tick=int(cfg.get('RUNNING_TICK_MS', 100)) / 1000.0,
        multiplier_step=float(cfg.get('MULTIPLIER_STEP', 0.01)),
        history_size=int(cfg.get('PAYOUT_HISTORY_SIZE', 10)),
        profit_window=int(cfg.get('PROFIT_WINDOW_ROUNDS', 10)),
    )


def get_engine(flask_app=None):
    from flask import current_app
    app = flask_app or current_app
    return app.extensions['round_engine']


def create_app(config_class=Config, scheduler=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import and register blueprints here
    from crashgame.main import main
    flask_app.register_blueprint(main)

    from crashgame.api.rounds import rounds, accounts
    flask_app.register_blueprint(rounds, url_prefix='/api/rounds')
    flask_app.register_blueprint(accounts, url_prefix='/api/accounts')

    from crashgame.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    # Make sure models are registered on the metadata for create_all / migrations
    import crashgame.models  # noqa: F401

    flask_app.extensions['round_engine'] = build_round_engine(flask_app, scheduler)

    @flask_app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        if isinstance(exc, HTTPException):
            return jsonify({'statusCode': exc.code, 'message': exc.description}), exc.code
        flask_app.logger.exception(f"[unhandled] {exc!r}")
        return jsonify({'statusCode': 500, 'message': 'Something went wrong!'}), 500

    @click.command('db-reset')
    @click.option('--seed-user', 'seed_users', multiple=True, help='Account to create with the starting balance.')
    def db_reset_command(seed_users):
        """Drops, recreates, and seeds the database."""
        from crashgame.models import Account
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            starting = Decimal(str(flask_app.config.get('STARTING_BALANCE', '1000.00')))
            users = seed_users or ('testuser1', 'testuser2', 'testuser3')
            for u in users:
                db.session.add(Account(username=u, balance=starting))

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
