"""CLI tools for formdesk administration."""

import click

from formdesk.core.config import settings
from formdesk.core.context import AppContext
from formdesk.core.security import create_session_token
from formdesk.db.enums import Role
from formdesk.services import user_service


def _context() -> AppContext:
    return AppContext.from_settings(settings)


@click.group()
def cli():
    """Formdesk CLI tools."""
    pass


@cli.command()
def init_db():
    """
    Create all tables directly from the models.

    For local development; deployed databases are migrated with Alembic.

    Example:
        formdesk init-db
    """
    ctx = _context()
    try:
        ctx.create_all()
        click.echo("✓ Database tables created")
    finally:
        ctx.dispose()


@cli.command()
@click.option("--email", required=True, help="Email address")
@click.option("--first-name", required=True, help="First name")
@click.option("--last-name", required=True, help="Last name")
@click.option(
    "--role",
    type=click.Choice([r.value for r in Role]),
    default=Role.USER.value,
    show_default=True,
    help="Account role",
)
def create_user(email: str, first_name: str, last_name: str, role: str):
    """
    Create an account and print a session token for it.

    Example:
        formdesk create-user --email "admin@example.com" --first-name Ada --last-name Admin --role admin
    """
    ctx = _context()
    db = ctx.session_factory()
    try:
        user = user_service.create_user(db, email, first_name, last_name, role)
        token = create_session_token(user.id, user.role, user.token_version, settings)

        click.echo(f"✓ Created {user.role}: {user.email}")
        click.echo(f"  ID: {user.id}")
        click.echo(f"  Token: {token}")

    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()
        ctx.dispose()


@cli.command()
@click.option("--email", required=True, help="User email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for a user by bumping their token_version.

    Example:
        formdesk revoke-sessions --email "user@example.com"
    """
    ctx = _context()
    db = ctx.session_factory()
    try:
        user = user_service.get_user_by_email(db, email)
        if not user:
            click.echo(f"❌ User not found: {email}")
            return

        old_version = user.token_version
        user_service.revoke_all_sessions(db, user.id)

        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {user.token_version}")

    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()
        ctx.dispose()


if __name__ == "__main__":
    cli()
