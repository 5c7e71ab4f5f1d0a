from flask import Flask, jsonify
from sigb.config import Config
from sigb.extensions import db, migrate, jwt, mail


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # 1) db init first (db.engine / db.session depend on it)
    db.init_app(app)

    # models must be imported before migrations / create_all see the metadata
    from sigb.models import (  # noqa: F401
        academic, activity, book, loan, notification_log,
        penalty, penalty_payment, penalty_setting, user,
    )

    # 2) DB objects (penalty_stats view) once the tables exist
    if app.config.get("ENSURE_DB_OBJECTS", True):
        from sigb.db_objects import ensure_db_objects
        ensure_db_objects(app)

    # 3) other extensions
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)

    # 4) API blueprints (url_prefix lives in each blueprint, except auth)
    from sigb.controllers.auth_controller import auth_bp
    from sigb.controllers.loan_controller import loan_bp
    from sigb.controllers.penalty_controller import penalty_bp
    from sigb.controllers.admin_penalty_controller import admin_penalty_bp
    from sigb.controllers.user_controller import user_bp
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(loan_bp)
    app.register_blueprint(penalty_bp)
    app.register_blueprint(admin_penalty_bp)
    app.register_blueprint(user_bp)

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    from sigb.cli import register_cli
    register_cli(app)

    # Scheduler (late check)
    from sigb.tasks.scheduler import start_scheduler
    start_scheduler(app)

    return app
