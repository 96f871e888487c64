from __future__ import annotations

import importlib
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .chat.controller import register as register_chat
from .common.datetime_utils import now_local
from .container import build_container
from .core.enums import Module
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables
from .fulfillment.controller import register as register_fulfillment
from .inventory.controller import register as register_inventory
from .marketing.controller import register as register_marketing
from .payroll.controller import register as register_payroll
from .support.controller import register as register_support
from .tasks.controller import register as register_tasks
from .users.controller import register as register_users
from .users.service import can_access
from .web.auth import current_user, login_required

logger = logging.getLogger(__name__)

DATABASE_DIR = Path(__file__).resolve().parents[3] / "database"


def create_app() -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["QR_TOKEN"] = getattr(settings, "QR_TOKEN", "OPSDESK_CHECKIN")
    app.config["UPLOAD_FOLDER"] = getattr(settings, "UPLOAD_FOLDER", "uploads")

    if bool(getattr(settings, "AUTO_INIT_DB", False)):
        apply_schema(db_config, schema_path=DATABASE_DIR / "schema.sql")
        logger.info("Schema ready (tables=%s)", len(list_tables(db_config)))
    if bool(getattr(settings, "AUTO_SEED_DB", False)):
        apply_seed_sql(db_config, seed_path=DATABASE_DIR / "seed.sql")
        ensure_demo_users(db_config)
        logger.info("Demo seed ready")

    container = build_container(
        db_config=db_config,
        auto_approve_daily=bool(getattr(settings, "TASK_AUTO_APPROVE_DAILY", True)),
        auto_approve_cutoff_hours=int(getattr(settings, "TASK_AUTO_APPROVE_CUTOFF_HOURS", 2)),
    )
    logger.info("Starting with settings=%s db=%s", settings_module, container.conn.config.describe())

    register_users(app, container)
    register_attendance(app, container)
    register_payroll(app, container)
    register_tasks(app, container)
    register_inventory(app, container)
    register_fulfillment(app, container)
    register_support(app, container)
    register_chat(app, container)
    register_marketing(app, container)

    @app.route("/dashboard", endpoint="dashboard")
    @login_required
    def dashboard():
        user = current_user()
        recurrence = None
        try:
            result = container.recurrence_service.ensure_today()
            recurrence = {
                "skipped": result.skipped,
                "instances_created": result.instances_created,
                "expired_tasks": result.expired_tasks,
            }
        except Exception:
            # the dashboard still loads when instantiation fails
            app.logger.exception("Daily task instantiation failed")

        return jsonify(
            {
                "user": {"user_id": user.user_id, "full_name": user.full_name, "role": user.role.value},
                "today": now_local().date().isoformat(),
                "modules": [m.value for m in Module if can_access(user.role, m)],
                "recurrence": recurrence,
            }
        )

    @app.route("/health", endpoint="health")
    def health():
        return jsonify({"status": "ok"})

    return app
