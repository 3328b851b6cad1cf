import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, g, jsonify, render_template, session
from flask_cors import CORS
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from storefront import db
from storefront.cli import register_commands
from storefront.core.config import Config
from storefront.core.dependencies import CONFIG_KEY, CONTAINER_KEY, DependencyContainer
from storefront.core.exceptions import BaseAPIException, DatabaseError
from storefront.core.security import PasswordHasher, ensure_csrf_token
from storefront.core.session import apply_remember_cookie, auto_login_from_cookie, current_user
from storefront.repositories import (
    ActivityLogRepository,
    CategoryRepository,
    PasswordResetRepository,
    ProductRepository,
    RememberMeRepository,
    TagRepository,
    UserRepository,
)
from storefront.routes.admin import admin_bp
from storefront.routes.api import api_bp
from storefront.routes.auth import auth_bp
from storefront.routes.contact import contact_bp
from storefront.routes.pages import pages_bp
from storefront.routes.products import products_bp
from storefront.routes.profile import profile_bp
from storefront.routes.utils import wants_json
from storefront.schemas.common_schemas import ErrorResponse
from storefront.services.admin_service import AdminService
from storefront.services.auth_service import AuthService
from storefront.services.contact_service import ContactService
from storefront.services.mail_service import MailService
from storefront.services.product_service import ProductService
from storefront.services.profile_service import ProfileService
from storefront.services.tag_service import TagService
from storefront.services.upload_service import ImageStorage
from storefront.utils.date_utils import DateUtils
from storefront.utils.formatting_utils import FormattingUtils

logger = logging.getLogger(__name__)


def build_container(config: Config) -> DependencyContainer:
    container = DependencyContainer()
    c = container.get

    for repo in (
        UserRepository,
        PasswordResetRepository,
        RememberMeRepository,
        ProductRepository,
        CategoryRepository,
        TagRepository,
        ActivityLogRepository,
    ):
        container.register(repo, repo)

    container.register_instance(Config, config)
    container.register(PasswordHasher, lambda: PasswordHasher(config.security.password_hash_rounds))
    container.register(MailService, lambda: MailService(config.mail, config.app.site_name))
    container.register(
        ImageStorage, lambda: ImageStorage(config.app.upload_folder, config.app.max_upload_bytes)
    )
    container.register(
        AuthService,
        lambda: AuthService(
            c(UserRepository), c(PasswordResetRepository), c(RememberMeRepository),
            c(MailService), c(PasswordHasher), config,
        ),
    )
    container.register(TagService, lambda: TagService(c(TagRepository)))
    container.register(
        ProductService,
        lambda: ProductService(
            c(ProductRepository), c(CategoryRepository), c(TagService), c(ImageStorage), config
        ),
    )
    container.register(
        ProfileService, lambda: ProfileService(c(UserRepository), c(PasswordHasher), c(ImageStorage))
    )
    container.register(
        AdminService,
        lambda: AdminService(
            c(UserRepository), c(ActivityLogRepository), c(ProductRepository),
            c(CategoryRepository), c(TagRepository),
        ),
    )
    container.register(ContactService, lambda: ContactService(config.app.phone_number))
    return container


def create_app(config: Optional[Config] = None) -> Flask:
    """Application factory."""
    config = config or Config()
    config.validate()

    logging.basicConfig(
        level=getattr(logging, config.app.log_level, logging.INFO),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )

    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=config.security.secret_key,
        DEBUG=config.app.debug,
        MAX_CONTENT_LENGTH=config.app.max_upload_bytes + 64 * 1024,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_COOKIE_SECURE=config.security.session_cookie_secure,
    )
    app.extensions[CONFIG_KEY] = config
    app.extensions[CONTAINER_KEY] = build_container(config)

    db.init_engine(config.database)

    app.register_blueprint(pages_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(products_bp, url_prefix="/products")
    app.register_blueprint(profile_bp, url_prefix="/profile")
    app.register_blueprint(contact_bp, url_prefix="/contact")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(api_bp, url_prefix="/api")

    CORS(
        app,
        resources={r"/api/*": {"origins": config.app.cors_origins}},
        supports_credentials=True,
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-CSRF-Token"],
    )

    # ------------------------------------------------------------------ #
    # Request hooks                                                        #
    # ------------------------------------------------------------------ #
    @app.before_request
    def assign_request_id():
        g.request_id = uuid.uuid4().hex[:8]

    app.before_request(auto_login_from_cookie)
    app.after_request(apply_remember_cookie)

    @app.after_request
    def security_headers(response):
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "same-origin"
        if response.mimetype == "text/html":
            if config.is_local:
                response.headers["Cache-Control"] = "no-cache"
            elif session or g.get("_current_user"):
                response.headers["Cache-Control"] = "private, no-store"
            else:
                response.headers["Cache-Control"] = "public, max-age=3600"
        return response

    @app.context_processor
    def template_globals():
        return {
            "csrf_token": ensure_csrf_token,
            "current_user": current_user,
            "recaptcha_site_key": config.recaptcha.site_key,
            "recaptcha_enabled": config.recaptcha.enabled,
            "site_name": config.app.site_name,
            "environment": config.environment,
        }

    app.jinja_env.filters["localtime"] = lambda value: DateUtils.format_for_display(value, config.app.timezone)
    app.jinja_env.filters["excerpt"] = FormattingUtils.truncate_text
    app.jinja_env.filters["full_name"] = FormattingUtils.format_name

    # ------------------------------------------------------------------ #
    # Error handlers                                                       #
    # ------------------------------------------------------------------ #
    def error_response(status: int, payload: dict, message: str):
        if wants_json():
            body = ErrorResponse(error=payload, request_id=g.get("request_id"))
            return jsonify(body.model_dump(mode="json")), status
        return render_template("errors/error.html", status=status, message=message), status

    @app.errorhandler(BaseAPIException)
    def api_exception(e: BaseAPIException):
        if e.status_code >= 500:
            logger.error(f"{e.error_code}: {e.internal_message}")
        return error_response(e.status_code, e.to_dict()["error"], e.message)

    @app.errorhandler(SQLAlchemyError)
    def db_error(e):
        logger.exception("Unhandled database error")
        wrapped = DatabaseError(str(e))
        return error_response(500, wrapped.to_dict()["error"], wrapped.message)

    @app.errorhandler(HTTPException)
    def http_error(e: HTTPException):
        payload = {"code": e.name.upper().replace(" ", "_"), "message": e.description, "details": {}}
        return error_response(e.code or 500, payload, e.description)

    # ------------------------------------------------------------------ #
    # Health check                                                         #
    # ------------------------------------------------------------------ #
    @app.get("/health")
    def health():
        """Liveness and readiness check. Returns 503 if DB is unreachable."""
        try:
            db.ping()
        except SQLAlchemyError as exc:
            logger.error(f"Health check failed: {exc}")
            return jsonify({"status": "error", "database": "unreachable"}), 503
        return jsonify({
            "status": "ok",
            "database": "reachable",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }), 200

    register_commands(app)
    return app
