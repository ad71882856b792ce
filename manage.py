import asyncio
import os
import subprocess
from typing import Annotated

from pydantic import validate_email
from rich import print
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine
import typer

from app.core.config import settings
from app.core.db import AsyncSessionLocal
from app.core.db.crud import user_db
from app.core.enums import UserRole
from app.core.utils import hash_password

app = typer.Typer()


async def clear_alembic_task():
    """
    Delete every row of ``alembic_version`` so migrations can be re-stamped.

    Missing tables and SQL errors are reported but do not fail the command.

    Raises:
        typer.Exit: If ``DATABASE_URL`` is not set.
    """
    print("[yellow]Clearing Alembic version history[/yellow]")
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        print("[red]Error: DATABASE_URL environment variable is not set[/red]")
        raise typer.Exit(1)

    engine = create_async_engine(database_url, echo=False)
    try:
        async with engine.connect() as connection:
            result = await connection.execute(text("DELETE FROM alembic_version"))
            await connection.commit()
            if result.rowcount > 0:
                print(
                    f"[green]Alembic version history cleared ({result.rowcount} rows)[/green]"
                )
            else:
                print("[cyan]Alembic version history is already empty[/cyan]")
    except SQLAlchemyError as e:
        print(f"[red]Error clearing Alembic version history:[/red] {str(e)}")
        if "alembic_version" in str(e):
            print("[cyan]alembic_version table does not exist; skipping clear[/cyan]")
        else:
            print(
                "[yellow]Skipping Alembic clear; leaving migration history unchanged[/yellow]"
            )
    finally:
        await engine.dispose()


async def create_admin_task(email: str, password: str | None, name: str) -> None:
    """
    Promote an existing user to admin, or create a new active admin.

    Raises:
        typer.Exit: A new account is needed but no password was given.
    """
    async with AsyncSessionLocal() as session:
        existing = await user_db.get_by_email(session, email)
        if existing is not None:
            if existing.role == UserRole.ADMIN:
                print(f"[yellow]User is already an admin:[/yellow] {email}")
                return
            print(f"Current role of {existing.name} <{existing.email}>: {existing.role.value}")
            await user_db.update(session, existing.id, {"role": UserRole.ADMIN})
            print(f"[green]User role updated to admin:[/green] {email}")
            return

        if not password:
            print("[red]Error: no user with that email; --password is required to create one[/red]")
            raise typer.Exit(1)

        await user_db.create(
            session,
            {
                "email": email,
                "name": name,
                "password_hash": hash_password(password),
                "role": UserRole.ADMIN,
                "is_active": True,
                "is_email_verified": True,
            },
        )
        print(f"[green]Admin created:[/green] {email}")


async def sweep_sessions_task() -> None:
    from app.infrastructure.scheduler.jobs import sweep_expired_sessions

    deleted = await sweep_expired_sessions()
    print(f"[green]Session sweep complete:[/green] {deleted} session(s) deleted")


async def expire_subscriptions_task() -> None:
    from app.infrastructure.scheduler.jobs import expire_premium_subscriptions

    expired = await expire_premium_subscriptions()
    print(f"[green]Subscription check complete:[/green] {expired} subscription(s) expired")


def email_validator(email: str) -> str:
    _, email = validate_email(email)
    return email.lower()


@app.command()
def createadmin(
    email: Annotated[str, typer.Argument(callback=email_validator)],
    password: Annotated[
        str | None,
        typer.Option(help="Required only when the account does not exist yet."),
    ] = None,
    name: Annotated[str, typer.Option()] = "Admin",
):
    """
    Grant the admin role to EMAIL, creating the account if needed.

    Examples:
        python manage.py createadmin jane@example.com
        python manage.py createadmin ops@example.com --password 'S3cret!pass'
    """
    asyncio.run(create_admin_task(email, password, name))


@app.command()
def sweepsessions():
    """Delete expired and long-inactive sessions now."""
    asyncio.run(sweep_sessions_task())


@app.command()
def expiresubscriptions():
    """Downgrade premium subscriptions whose end date has passed, now."""
    asyncio.run(expire_subscriptions_task())


@app.command()
def clearalembic():
    """Clear Alembic migration history."""
    asyncio.run(clear_alembic_task())


@app.command()
def makemigrations(comment: Annotated[str, typer.Argument()] = "auto"):
    """
    Creates a new Alembic migration revision with an autogenerated migration script.

    Args:
        comment (str, optional): The message to use for the migration revision. Defaults to "auto".

    Raises:
        subprocess.CalledProcessError: If the Alembic command fails.
    """
    try:
        revision_command = f'alembic revision --autogenerate -m "{comment}"'
        print(f"Running Alembic migrations: {revision_command}")
        subprocess.run(revision_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise
    print("[green]Make migrations complete[/green]")


@app.command()
def showmigrations():
    """Show the Alembic migration history."""
    try:
        history_command = "alembic history"
        print(f"Running Alembic history: {history_command}")
        subprocess.run(history_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise
    print("[green]Show migrations complete[/green]")


@app.command()
def migrate():
    """
    Runs the Alembic database migration to upgrade the schema to the latest version.
    """
    try:
        upgrade_command = "alembic upgrade head"
        print(f"Running Alembic upgrade: {upgrade_command}")
        subprocess.run(upgrade_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise
    print("[green]Migration complete[/green]")


@app.command()
def runserver():
    try:
        server_command = (
            "uvicorn app.main:app --host 127.0.0.1 --port 8000 --reload"
            if settings.DEBUG
            else "uvicorn app.main:app --host 0.0.0.0 --port 8000"
        )
        print(f"Running FastAPI server: {server_command}")
        subprocess.run(server_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise


@app.command()
def runscheduler():
    """Run the maintenance scheduler as a standalone process."""
    try:
        scheduler_command = "python -m app.infrastructure.scheduler.main"
        print(f"Running scheduler: {scheduler_command}")
        subprocess.run(scheduler_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise


if __name__ == "__main__":
    app()
