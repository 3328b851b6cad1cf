"""
Flask CLI commands.

    flask --app storefront init-db
    flask --app storefront seed
    flask --app storefront create-admin alice alice@example.com
"""

import logging

import click
from flask import Flask

from storefront import db
from storefront.core.dependencies import get_service
from storefront.core.exceptions import ConflictError
from storefront.core.security import PasswordHasher
from storefront.repositories import UserRepository
from storefront.seed import seed_database
from storefront.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)


def register_commands(app: Flask) -> None:
    @app.cli.command("init-db")
    def init_db():
        """Create any missing tables."""
        db.create_schema()
        click.echo("Database schema is up to date.")

    @app.cli.command("seed")
    def seed():
        """Populate categories, tags and sample products."""
        counts = seed_database()
        for name, count in counts.items():
            click.echo(f"  [+] {name}: {count}")

    @app.cli.command("create-admin")
    @click.argument("username")
    @click.argument("email")
    @click.password_option()
    def create_admin(username, email, password):
        """Create an active admin account."""
        error = (
            ValidationUtils.validate_username(username)
            or ValidationUtils.validate_email(email)
            or ValidationUtils.validate_password(password)
        )
        if error:
            raise click.BadParameter(error)

        users = get_service(UserRepository)
        email = ValidationUtils.normalize_email(email)
        if users.username_or_email_exists(username, email):
            raise click.ClickException(ConflictError("Username or email already exists.").message)

        user_id = users.create(
            username=username,
            email=email,
            password_hash=get_service(PasswordHasher).hash(password),
            activation_code=None,
            role="admin",
            is_active=True,
        )
        logger.info("Created admin %s (id=%s) from the command line", username, user_id)
        click.echo(f"Admin {username} created (id={user_id}).")
