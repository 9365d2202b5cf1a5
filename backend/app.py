"""
FLASK APP ENTRY POINT - OTP CODE SERVICE
========================================

Sets up the Flask app, CORS, logging, the account store and the OTP
service, and registers the API blueprint.

MAIN FEATURES
- Application factory: create_app(config) so tests inject their own config
- Master key derived once here and handed to SecretCipher
- Store chosen by config: SQLite file (default) or in-memory
- Every OtpError is returned as JSON {error, kind, key?} with its HTTP status
"""
import logging
from datetime import datetime, timezone

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from backend.config import Config
from core.accounts import InMemoryAccountStore
from core.errors import AccountNotFound, OtpError
from core.secret_cipher import FALLBACK_SEED, SecretCipher
from core.service import OtpService

logger = logging.getLogger(__name__)


def _build_store(app):
    if app.config["ACCOUNT_STORE"] == "memory":
        return InMemoryAccountStore()
    if app.config["ACCOUNT_STORE"] == "sqlite":
        from database.db_manager import SqliteAccountStore
        return SqliteAccountStore(app.config["DATABASE_FILE"])
    raise ValueError(f"Unknown ACCOUNT_STORE: {app.config['ACCOUNT_STORE']!r}")


def _build_cipher(app) -> SecretCipher:
    seed = app.config.get("ENCRYPTION_KEY")
    if not seed:
        logger.warning(
            "ENCRYPTION_KEY not set; using a built-in fallback. Encrypted secrets "
            "become unreadable if ENCRYPTION_KEY is set or changed later."
        )
        seed = FALLBACK_SEED
    return SecretCipher.from_seed(seed)


def create_app(config=Config, store=None, clock=None) -> Flask:
    """
    Build the application.

    Arguments:
        config: config class/object, or a dict of overrides on top of Config
        store: AccountStore to use instead of the configured one
        clock: callable returning epoch seconds (tests freeze time with it)
    """
    app = Flask(__name__)
    if isinstance(config, dict):
        app.config.from_object(Config)
        app.config.update(config)
    else:
        app.config.from_object(config)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Allow browser frontends on another origin to call the API
    CORS(app)

    service_kwargs = {}
    if clock is not None:
        service_kwargs["clock"] = clock
    app.extensions["otp_service"] = OtpService(
        store if store is not None else _build_store(app),
        _build_cipher(app),
        **service_kwargs,
    )

    from backend.routes import otp_bp
    app.register_blueprint(otp_bp)

    @app.errorhandler(OtpError)
    def handle_otp_error(error):
        body = error.to_dict()
        if isinstance(error, AccountNotFound):
            body["availableAccounts"] = app.extensions["otp_service"].store.keys()
        return jsonify(body), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"error": error.description, "kind": error.name}), error.code

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({
            "status": "ok",
            "accounts": app.extensions["otp_service"].store.count(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    return app


def main(host: str = '0.0.0.0', port: int = 5000, debug: bool = False):
    app = create_app()
    app.run(debug=debug, host=host, port=port)


if __name__ == '__main__':
    main()
