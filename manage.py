# manage.py

from dotenv import load_dotenv
load_dotenv()

import asyncio
import typer
import uvicorn
from typing_extensions import Annotated

# Typer CLI: init db, user, sync ERP, overdue check, server.
cli = typer.Typer(
    help="Manajemen CLI untuk Repair Tracker."
)


def _configure_logging():
    from repair_tracker.config import settings
    from repair_tracker.logging_config import setup_logging
    setup_logging(settings.LOG_LEVEL)


def _report(result, success_message: str) -> None:
    """Cetak ActionResult; exit code 1 kalau gagal."""
    if result.success:
        typer.secho(f"✅ {success_message}", fg=typer.colors.GREEN)
        return
    typer.secho(f"🔥 Gagal [{result.error_code}]: {result.error}", fg=typer.colors.RED)
    raise typer.Exit(code=1)


async def _with_registry(callback):
    """Jalankan callback(registry) dengan session database baru, tanpa user login."""
    from repair_tracker.database import AsyncSessionLocal
    from repair_tracker.services import ServiceRegistry, build_external_clients, close_external_clients
    from repair_tracker.config import settings

    clients = build_external_clients(settings)
    try:
        async with AsyncSessionLocal() as session:
            registry = ServiceRegistry(session, config=settings, **clients)
            return await callback(registry)
    finally:
        close_external_clients(clients)

# --- Database Commands ---

@cli.command()
def init_db():
    """
    Inisialisasi database dan membuat semua tabel.
    """
    from repair_tracker.database import Base, async_engine
    # Import models supaya Base.metadata kenal semua tabel
    from repair_tracker import models  # noqa: F401

    _configure_logging()

    async def create_tables():
        async with async_engine.begin() as conn:
            typer.echo("Membuat semua tabel sesuai models...")
            await conn.run_sync(Base.metadata.create_all)
        await async_engine.dispose()
        typer.secho("✅ Database berhasil diinisialisasi.", fg=typer.colors.GREEN)

    asyncio.run(create_tables())

# --- User Management Commands ---

@cli.command()
def create_user(
    email: Annotated[str, typer.Argument(help="Email user baru (harus unik).")],
    name: Annotated[str, typer.Option(help="Nama tampilan.")] = None
):
    """
    Membuat user baru. Login tetap lewat OAuth provider.
    """
    from repair_tracker.database import AsyncSessionLocal
    from repair_tracker.services import AuthService
    from repair_tracker.schemas import UserCreateSchema
    from repair_tracker.services.exceptions import RepairTrackerError
    from repair_tracker.config import settings

    _configure_logging()

    async def add_user():
        typer.echo(f"Mencoba membuat user '{email}'...")
        async with AsyncSessionLocal() as session:
            try:
                user = await AuthService(session, settings.SECRET_KEY).create_user(
                    UserCreateSchema(email=email, name=name)
                )
                typer.secho(f"✅ User '{user.email}' berhasil dibuat (id={user.id}).", fg=typer.colors.GREEN)
            except RepairTrackerError as e:
                typer.secho(f"🔥 Gagal: {e.message}", fg=typer.colors.RED)
                raise typer.Exit(code=1)

    asyncio.run(add_user())


@cli.command()
def issue_token(
    email: Annotated[str, typer.Argument(help="Email user yang sudah terdaftar.")]
):
    """
    Buat bearer token session untuk user (testing API / script).
    """
    from repair_tracker.database import AsyncSessionLocal
    from repair_tracker.services import AuthService
    from repair_tracker.services.exceptions import NotFoundError
    from repair_tracker.config import settings

    async def make_token():
        async with AsyncSessionLocal() as session:
            auth_service = AuthService(
                session,
                settings.SECRET_KEY,
                algorithm=settings.ALGORITHM,
                token_expiry_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
            )
            try:
                user = await auth_service.get_user_by_email(email)
            except NotFoundError as e:
                typer.secho(f"🔥 Gagal: {e.message}", fg=typer.colors.RED)
                raise typer.Exit(code=1)
            await auth_service.record_login(user)
            typer.echo(auth_service.issue_session_token(user))

    asyncio.run(make_token())

# --- Integration Commands ---

@cli.command()
def sync_erp(
    max_pages: Annotated[int, typer.Option(help="Batas jumlah halaman ERP.")] = None,
    page_size: Annotated[int, typer.Option(help="Jumlah PO per halaman.")] = None
):
    """
    Sync semua purchase order dari ERP ke repair order lokal.
    """
    _configure_logging()

    async def run_sync(registry):
        return await registry.erp_sync_service.sync_all(page_size=page_size, max_pages=max_pages)

    result = asyncio.run(_with_registry(run_sync))
    if result.success:
        summary = result.data
        typer.echo(
            f"Processed {summary.processed}: {summary.created} created, "
            f"{summary.updated} updated, {summary.failed} failed "
            f"({summary.pages_fetched} pages)"
        )
        for error in summary.errors:
            typer.secho(f"  - {error}", fg=typer.colors.YELLOW)
    _report(result, "Sync ERP selesai.")


@cli.command()
def check_overdue(
    days: Annotated[int, typer.Option(help="Minimal hari di WAITING QUOTE.")] = 7
):
    """
    Antrikan email follow-up untuk RO yang terlalu lama menunggu quote.
    """
    _configure_logging()

    async def queue_followups(registry):
        return await registry.notification_service.queue_overdue_followups(days=days)

    result = asyncio.run(_with_registry(queue_followups))
    if result.success:
        typer.echo(f"Overdue: {result.data['overdue']}, queued: {result.data['queued']}")
    _report(result, "Overdue check selesai.")


@cli.command()
def send_approved_email(
    notification_id: Annotated[int, typer.Argument(help="ID notification yang sudah APPROVED.")]
):
    """
    Kirim notification yang sudah di-approve (dipakai background worker).
    """
    _configure_logging()

    async def deliver(registry):
        return await registry.notification_service.deliver_approved(notification_id)

    result = asyncio.run(_with_registry(deliver))
    if result.success:
        typer.echo(f"Notification {notification_id}: {result.data.action}")
    _report(result, "Delivery selesai.")

# --- Server Commands ---

@cli.command()
def run(
    host: str = "127.0.0.1",
    port: int = 8000,
    reload: bool = True
):
    """
    Menjalankan development server Uvicorn.
    """
    typer.echo(f"🚀 Menjalankan server di http://{host}:{port}")
    uvicorn.run("main:app", host=host, port=port, reload=reload, factory=True)


if __name__ == "__main__":
    cli()
