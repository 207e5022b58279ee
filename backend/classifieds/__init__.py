import os
import click
from pathlib import Path
from flask import Flask, jsonify, request, g
from sqlalchemy import text, inspect
from werkzeug.exceptions import HTTPException

from classifieds.extensions import db, migrate, cors
from classifieds.models import ADMIN_ROLES, Listing, User
from classifieds.segments.segment_admin import admin_bp
from classifieds.segments.segment_search import search_bp
from classifieds.services.taxonomy import normalize_category_to_slug, resolve_subcategory_input
from classifieds.utils.observability import git_sha, init_sentry, install_request_observers


SERVICE_NAME = "classifieds-backend"


def _resolve_alembic_head() -> str:
    try:
        from alembic.config import Config
        from alembic.script import ScriptDirectory

        migrations_dir = Path(__file__).resolve().parents[1] / "migrations"
        cfg = Config(str(migrations_dir / "alembic.ini"))
        cfg.set_main_option("script_location", str(migrations_dir))
        script = ScriptDirectory.from_config(cfg)
        heads = script.get_heads()
        return heads[0] if heads else "unknown"
    except Exception:
        return "unknown"


def _env_int(name: str, default: int, *, minimum: int = 1, maximum: int = 100000) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        value = int(default)
    else:
        try:
            value = int(raw)
        except Exception:
            value = int(default)
    if value < minimum:
        value = minimum
    if value > maximum:
        value = maximum
    return value


def _ensure_listings_schema_compatibility():
    """
    Keep runtime compatibility for listing tables created before tags, slugs
    and the moderation columns existed.
    """
    try:
        engine = db.engine
        insp = inspect(engine)
        tables = set(insp.get_table_names())
        if "listings" not in tables:
            return
        dialect = (getattr(engine.dialect, "name", "") or "").lower()
        dt_type = "TIMESTAMP" if "postgres" in dialect else "DATETIME"
        cols_before = {str(c.get("name", "")).lower() for c in insp.get_columns("listings")}
        add_specs = {
            "tags": "tags TEXT",
            "category_slug": "category_slug VARCHAR(80)",
            "subcategory": "subcategory VARCHAR(80)",
            "subcategory_slug": "subcategory_slug VARCHAR(80)",
            "moderation_note": "moderation_note TEXT",
            "moderated_by": "moderated_by INTEGER",
            "moderated_at": f"moderated_at {dt_type}",
        }
        with engine.begin() as conn:
            for name, ddl in add_specs.items():
                if name not in cols_before:
                    conn.execute(text(f"ALTER TABLE listings ADD COLUMN {ddl}"))
            conn.execute(
                text(
                    "CREATE INDEX IF NOT EXISTS ix_listings_status_created "
                    "ON listings (status, created_at)"
                )
            )
    except Exception:
        # Never block startup on compatibility patch-up.
        pass


def _cors_origins(env: str) -> list[str]:
    raw = (os.getenv("CORS_ORIGINS") or "").strip()
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if env in ("prod", "production"):
        return origins
    return origins or ["*"]


def create_app():
    app = Flask(__name__)
    init_sentry(app)

    env = (os.getenv("CLASSIFIEDS_ENV", "dev") or "dev").strip().lower()

    # Production safety checks
    if env in ("prod", "production"):
        secret = (os.getenv("SECRET_KEY") or "").strip()
        if not secret or len(secret) < 16:
            raise RuntimeError("SECRET_KEY must be set and at least 16 chars in production")

    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    instance_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "instance"))

    database_url = os.getenv("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL")
    if not database_url:
        if env in ("prod", "production"):
            raise RuntimeError("DATABASE_URL (or SQLALCHEMY_DATABASE_URI) must be set in production")
        os.makedirs(instance_dir, exist_ok=True)
        database_url = f"sqlite:///{os.path.join(instance_dir, 'classifieds.db').replace(os.sep, '/')}"
    # Managed Postgres hosts still hand out the legacy scheme.
    if database_url.startswith("postgres://"):
        database_url = "postgresql://" + database_url[len("postgres://"):]
    app.config["SQLALCHEMY_DATABASE_URI"] = database_url

    engine_options = {
        "pool_pre_ping": True,
        "pool_recycle": _env_int("DB_POOL_RECYCLE_SECONDS", 1800, minimum=60, maximum=86400),
    }
    if not database_url.startswith("sqlite://"):
        engine_options.update(
            {
                "pool_size": _env_int("DB_POOL_SIZE", 10, minimum=1, maximum=200),
                "max_overflow": _env_int("DB_MAX_OVERFLOW", 20, minimum=0, maximum=500),
                "pool_timeout": _env_int("DB_POOL_TIMEOUT_SECONDS", 30, minimum=1, maximum=300),
            }
        )
        app.logger.info(
            "db_pooling_enabled pool_size=%s max_overflow=%s pool_timeout=%s pool_recycle=%s",
            engine_options["pool_size"],
            engine_options["max_overflow"],
            engine_options["pool_timeout"],
            engine_options["pool_recycle"],
        )
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options

    cors.init_app(app, resources={r"/api/*": {"origins": _cors_origins(env)}})

    db.init_app(app)
    migrate.init_app(app, db)
    install_request_observers(app)
    with app.app_context():
        _ensure_listings_schema_compatibility()

    @app.errorhandler(HTTPException)
    def _api_http_exception(error: HTTPException):
        # Keep API failures JSON-only for predictable frontend handling.
        if not request.path.startswith("/api/"):
            return error
        payload = {
            "ok": False,
            "error": error.name,
            "message": error.description or error.name,
            "status": int(error.code or 500),
        }
        rid = (getattr(g, "request_id", "") or "").strip()
        if rid:
            payload["trace_id"] = rid
        return jsonify(payload), int(error.code or 500)

    @app.errorhandler(Exception)
    def _api_unhandled_exception(error: Exception):
        app.logger.exception("unhandled_exception path=%s", request.path)
        try:
            db.session.rollback()
        except Exception:
            pass
        payload = {
            "ok": False,
            "error": "InternalServerError",
            "message": "Internal server error",
            "status": 500,
        }
        rid = (getattr(g, "request_id", "") or "").strip()
        if rid:
            payload["trace_id"] = rid
        return jsonify(payload), 500

    tables_ready = {"done": False}

    @app.before_request
    def _ensure_tables_once():
        if tables_ready["done"]:
            return
        try:
            db.create_all()
        except Exception:
            app.logger.warning("create_all_failed", exc_info=True)
        tables_ready["done"] = True

    @app.teardown_request
    def _cleanup_db_session(exc):
        if exc is not None:
            try:
                db.session.rollback()
            except Exception:
                pass

    app.register_blueprint(search_bp)
    app.register_blueprint(admin_bp)

    @app.get("/api/health")
    def health():
        db_state = "ok"
        db_error = None
        try:
            with db.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            db_state = "fail"
            msg = str(e)
            if msg:
                db_error = (msg[:300] + "...") if len(msg) > 300 else msg
        payload = {
            "ok": True,
            "service": SERVICE_NAME,
            "env": env,
            "db": db_state,
            "git_sha": git_sha(),
            "alembic_head": _resolve_alembic_head(),
        }
        if db_error:
            payload["db_error"] = db_error
        return jsonify(payload)

    @app.get("/api/version")
    def version():
        return jsonify({
            "ok": True,
            "alembic_head": _resolve_alembic_head(),
            "git_sha": git_sha(),
        })

    @app.cli.command("grant-admin")
    @click.option("--email", "email", required=True, help="Email of the user to promote")
    @click.option("--role", "role", default="admin", show_default=True, type=click.Choice(list(ADMIN_ROLES)))
    def grant_admin(email: str, role: str):
        u = User.query.filter_by(email=email.strip().lower()).first()
        if not u:
            raise click.ClickException("User not found.")
        u.role = role
        db.session.commit()
        click.echo(f"grant_admin_ok {u.email} role={role}")

    @app.cli.command("backfill-slugs")
    @click.option("--dry-run", is_flag=True, default=False, help="Report changes without writing them")
    def backfill_slugs(dry_run: bool):
        """Fill category_slug/subcategory_slug on rows that only carry display names."""
        rows = Listing.query.filter(
            (Listing.category_slug.is_(None)) | (Listing.subcategory_slug.is_(None))
        ).all()
        changed = 0
        for row in rows:
            dirty = False
            if row.category and not row.category_slug:
                row.category_slug = normalize_category_to_slug(row.category)
                dirty = True
            if row.subcategory and not row.subcategory_slug:
                resolved = resolve_subcategory_input(row.subcategory, row.category)
                if resolved is not None:
                    row.subcategory_slug = resolved.slug
                    dirty = True
            if dirty:
                changed += 1
        if dry_run:
            db.session.rollback()
        else:
            db.session.commit()
        click.echo(f"backfill_slugs_ok changed={changed} dry_run={int(dry_run)}")

    return app
