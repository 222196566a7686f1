from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def _parse_price_options(values):
    prices = {}
    for raw in values:
        coin, sep, value = raw.partition('=')
        if not sep:
            raise click.BadParameter(f"expected coin=price, got {raw!r}", param_hint='--price')
        try:
            prices[coin.strip().lower()] = float(value)
        except ValueError:
            raise click.BadParameter(f"price for {coin} is not a number", param_hint='--price')
    return prices


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    from predictx.api.predictions import predictions
    flask_app.register_blueprint(predictions, url_prefix='/api')

    from predictx.api.stats import stats
    flask_app.register_blueprint(stats, url_prefix='/api')

    from predictx.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates all tables."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('settle-due')
    @click.option('--price', 'price_opts', multiple=True, help='Settlement price as coin=value, e.g. bitcoin=67000')
    @click.option('--limit', type=int, default=None, help='Maximum predictions to settle')
    def settle_due_command(price_opts, limit):
        """Settles expired pending predictions at the given prices."""
        from predictx.services.game.settlement import settle_due_predictions
        prices = _parse_price_options(price_opts)
        with flask_app.app_context():
            report = settle_due_predictions(
                prices, limit=limit or flask_app.config.get('CHECK_RESULTS_MAX_LIMIT', 50)
            )
        print(f"Checked {report['checked']}, resolved {report['resolved']}, skipped {report['skipped']}")
        for err in report['errors']:
            print(f"  ! {err}")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(settle_due_command)

    return flask_app
