"""TaRL Portal CLI tool (tarl-portal)."""

import json

import typer
from sqlalchemy.engine import make_url

from tarl_portal.core.config import settings
from tarl_portal.db.session import Database

app = typer.Typer(name="tarl-portal", help="TaRL Portal access engine CLI")
db_app = typer.Typer(help="Database management commands")
app.add_typer(db_app, name="db")


def _database() -> Database:
    return Database.from_settings(settings)


def _ensure_mysql_database(drop: bool = False) -> None:
    """CREATE (and optionally DROP first) the configured MySQL schema."""
    import pymysql

    url = make_url(settings.DATABASE_URL)
    conn = pymysql.connect(
        host=url.host or "localhost",
        port=url.port or 3306,
        user=url.username,
        password=url.password or "",
    )
    try:
        cursor = conn.cursor()
        if drop:
            cursor.execute(f"DROP DATABASE IF EXISTS `{url.database}`")
        cursor.execute(
            f"CREATE DATABASE IF NOT EXISTS `{url.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


@db_app.command("create")
def db_create():
    """Create the database (MySQL only) and all tables."""
    if make_url(settings.DATABASE_URL).get_backend_name() == "mysql":
        _ensure_mysql_database()
    _database().create_all()
    typer.echo("✅ Database and tables ready")


@db_app.command("seed")
def db_seed(
    sample_data: bool = typer.Option(False, "--sample-data", help="Also seed a demo organization tree"),
):
    """Seed roles, pages, default permissions and the admin user."""
    from tarl_portal.db.seeds.run import seed_all

    database = _database()
    database.create_all()
    with database.session() as db:
        summary = seed_all(db, sample_data=sample_data)
    typer.echo(f"✅ All seeds applied: {summary.model_dump_json()}")


@db_app.command("reset")
def db_reset():
    """Drop and recreate every table (DANGER)."""
    confirm = typer.confirm("⚠️  This will DROP all portal tables. Continue?")
    if not confirm:
        raise typer.Abort()
    database = _database()
    if database.engine.dialect.name == "mysql":
        _ensure_mysql_database(drop=True)
    else:
        database.drop_all()
    database.create_all()
    typer.echo("✅ Database reset")


@app.command("token")
def issue_token(
    user_id: int = typer.Argument(..., help="User ID to issue a session token for"),
    minutes: int = typer.Option(None, help="Lifetime in minutes"),
):
    """Print a bearer token for a user (development helper)."""
    from datetime import timedelta
    from tarl_portal.core.security import create_access_token

    expires = timedelta(minutes=minutes) if minutes else None
    typer.echo(create_access_token({"sub": str(user_id)}, expires))


@app.command("check-action")
def check_action(
    role: str = typer.Argument(..., help="Role name"),
    page_name: str = typer.Argument(..., help="Page name"),
    action: str = typer.Argument("view", help="Action name"),
):
    """Resolve a single action permission against the configured database."""
    from tarl_portal.services.permission_service import permission_service

    with _database().session() as db:
        allowed = permission_service.can_perform_action(db, role, page_name, action)
    typer.echo(f"{role} {action} {page_name}: {'allowed' if allowed else 'denied'}")
    if not allowed:
        raise typer.Exit(code=1)


@app.command("menu")
def show_menu(
    role: str = typer.Argument(..., help="Role name"),
    locale: str = typer.Option(settings.DEFAULT_LOCALE, help="en or km"),
):
    """Print the menu tree a role would see."""
    from tarl_portal.services.menu_service import menu_service

    with _database().session() as db:
        items = menu_service.build_menu(db, role, locale)
    typer.echo(json.dumps([item.model_dump() for item in items], indent=2, ensure_ascii=False))


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(True, help="Auto-reload"),
):
    """Start the FastAPI development server."""
    import uvicorn
    uvicorn.run("tarl_portal.main:create_app", factory=True, host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
