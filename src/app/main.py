from flask import Flask

from app.backtests import bp as backtests_bp
from app.logging_setup import setup_logging
from app.settings import Settings
from data.results_store import ResultStore


def create_app(settings: Settings | None = None) -> Flask:
    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.config["RESULT_STORE"] = ResultStore(settings.results_dir)
    app.register_blueprint(backtests_bp)
    return app


if __name__ == "__main__":
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_dir)
    create_app(settings).run(debug=settings.debug)
