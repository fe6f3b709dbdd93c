"""CLI tools for tenant administration."""

import click

from app.core.security import PLATFORM_ADMIN_ROLE, create_tenant_token
from app.db.models import AppUser
from app.db.schema import ALL_TABLES, ensure_tables
from app.db.session import SessionLocal, engine
from app.schemas.tenant import TenantContext
from app.services import calendar_service
from app.utils.normalization import normalize_email, normalize_name


@click.group()
def cli():
    """Calendar & CRM CLI tools."""
    pass


@cli.command("ensure-tables")
def ensure_tables_cmd():
    """
    Create every missing table (calendar and CRM).

    Safe to run repeatedly; existing tables are left alone.

    Example:
        python -m app.cli ensure-tables
    """
    created = ensure_tables(engine, ALL_TABLES)
    if created:
        for name in created:
            click.echo(f"✓ Created table {name}")
    else:
        click.echo("✓ All tables already exist")


@cli.command()
@click.option("--client-id", required=True, type=int, help="Tenant client id")
@click.option("--app-id", required=True, help="Tenant app id")
def seed_calendars(client_id: int, app_id: str):
    """
    Seed the default calendars (Work, Sales, Marketing, Personal) for a tenant.

    No-op when the tenant already has calendars.

    Example:
        python -m app.cli seed-calendars --client-id 7 --app-id crm-main
    """
    tenant = TenantContext(client_id=client_id, app_id=app_id)
    db = SessionLocal()
    try:
        calendar_service.ensure_calendar_schema(db)
        seeded = calendar_service.seed_default_calendars(db, tenant)
        db.commit()
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise
    finally:
        db.close()

    if not seeded:
        raise click.ClickException("Seeding failed, see logs")
    click.echo(f"✓ Default calendars ready for client {client_id} / app {app_id}")


@cli.command()
@click.option("--client-id", required=True, type=int, help="Tenant client id")
@click.option("--app-id", required=True, help="Tenant app id")
@click.option("--name", required=True, help="Display name")
@click.option("--email", required=True, help="Email address (used to resolve attendees)")
def create_user(client_id: int, app_id: str, name: str, email: str):
    """
    Add an end user to a tenant's user directory.

    Example:
        python -m app.cli create-user --client-id 7 --app-id crm-main --name "Ada" --email ada@example.com
    """
    clean_email = normalize_email(email)
    clean_name = normalize_name(name)
    if not clean_email or "@" not in clean_email:
        raise click.BadParameter("Email must contain '@'", param_hint="--email")
    if not clean_name:
        raise click.BadParameter("Name cannot be empty", param_hint="--name")

    db = SessionLocal()
    try:
        calendar_service.ensure_calendar_schema(db)
        existing = (
            db.query(AppUser)
            .filter(
                AppUser.client_id == client_id,
                AppUser.app_id == app_id,
                AppUser.email == clean_email,
            )
            .first()
        )
        if existing:
            click.echo(f"❌ User {clean_email} already exists (id {existing.id})")
            return

        user = AppUser(name=clean_name, email=clean_email, client_id=client_id, app_id=app_id)
        db.add(user)
        db.commit()
        click.echo(f"✓ Created user: {clean_name} <{clean_email}>")
        click.echo(f"  ID: {user.id}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise
    finally:
        db.close()


@cli.command()
@click.option("--client-id", required=True, type=int, help="Tenant client id")
@click.option("--app-id", required=True, help="Tenant app id")
@click.option("--user-id", default=None, type=int, help="End user id (omit for an app-level token)")
@click.option("--admin", is_flag=True, help="Platform admin token (no tenant isolation)")
@click.option("--expires-hours", default=None, type=int, help="Lifetime (default: JWT_EXPIRES_HOURS)")
def mint_token(
    client_id: int,
    app_id: str,
    user_id: int | None,
    admin: bool,
    expires_hours: int | None,
):
    """
    Print a signed tenant token for local testing and service calls.

    Example:
        python -m app.cli mint-token --client-id 7 --app-id crm-main --user-id 42
    """
    token = create_tenant_token(
        client_id=client_id,
        app_id=app_id,
        user_id=user_id,
        role=PLATFORM_ADMIN_ROLE if admin else "member",
        expires_hours=expires_hours,
    )
    click.echo(token)


if __name__ == "__main__":
    cli()
