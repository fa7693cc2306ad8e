"""Command Line Interface for the patient-records service.

Commands:
    init-db   create the DuckDB schema and indexes
    seed      insert the sample patients and their addresses
    serve     run the API with uvicorn
    info      show the active configuration
"""

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from patient_records import __version__
from patient_records.adapters.storage.duckdb_store import DuckDBDocumentStore
from patient_records.adapters.storage.sample_data import sample_addresses, sample_patients
from patient_records.domain.ports import DuplicateRecordError, PatientRecordsError
from patient_records.infrastructure.factory import create_document_store, create_repositories
from patient_records.infrastructure.logging_config import setup_logging
from patient_records.infrastructure.settings import settings

app = typer.Typer(
    name="patient-records",
    help="Patient Records: patient and address storage with cache-aside reads",
    add_completion=False
)
console = Console()


def open_store_cli() -> DuckDBDocumentStore:
    """Open the configured DuckDB store or exit with an error."""
    if settings.repository_backend != "duckdb":
        console.print("[red]✗[/red] This command needs PR_REPOSITORY_BACKEND=duckdb")
        raise typer.Exit(code=1)
    try:
        return create_document_store(settings)
    except (PatientRecordsError, ValueError) as e:
        console.print(f"[red]✗[/red] Failed to open database: {str(e)}")
        raise typer.Exit(code=1)


@app.command("init-db")
def init_db() -> None:
    """Create tables and indexes in the configured DuckDB database."""
    store = open_store_cli()
    try:
        create_repositories(store)
        console.print(f"[green]✓[/green] Schema ready at {settings.get_db_path()}")
    except PatientRecordsError as e:
        console.print(f"[red]✗[/red] Schema initialization failed: {str(e)}")
        raise typer.Exit(code=1)
    finally:
        store.close()


@app.command()
def seed() -> None:
    """Insert the ten sample patients with one address each.

    Records that already exist are skipped and reported.
    """
    store = open_store_cli()
    inserted, skipped = 0, 0
    addresses_saved, addresses_skipped = 0, 0
    try:
        patients, addresses = create_repositories(store)
        for patient in sample_patients():
            try:
                patients.create(patient)
                inserted += 1
            except DuplicateRecordError:
                skipped += 1
                console.print(f"[yellow]⚠[/yellow] Patient {patient.patient_id} already exists, skipped")
        for address in sample_addresses():
            try:
                addresses.upsert(address.patient_id, address)
                addresses_saved += 1
            except DuplicateRecordError:
                addresses_skipped += 1
    except PatientRecordsError as e:
        console.print(f"[red]✗[/red] Seeding failed: {str(e)}")
        raise typer.Exit(code=1)
    finally:
        store.close()

    summary_table = Table(title="Seed Summary")
    summary_table.add_column("Entity", style="cyan")
    summary_table.add_column("Written", style="green")
    summary_table.add_column("Skipped", style="yellow")
    summary_table.add_row("Patients", str(inserted), str(skipped))
    summary_table.add_row("Addresses", str(addresses_saved), str(addresses_skipped))
    console.print(summary_table)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run(
        "patient_records.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command()
def info() -> None:
    """Display the active configuration."""
    console.print("[bold blue]System Information[/bold blue]\n")

    info_table = Table(show_header=False, box=None, padding=(0, 2))
    info_table.add_row("Application:", settings.app_name)
    info_table.add_row("Repository Backend:", settings.repository_backend)
    if settings.repository_backend == "duckdb":
        info_table.add_row("Database Path:", settings.get_db_path())
    info_table.add_row("Cache Backend:", settings.cache_config.backend)
    info_table.add_row("Entity TTL:", f"{settings.cache_config.entity_ttl_seconds}s")
    info_table.add_row("List/Count TTL:", f"{settings.cache_config.aggregate_ttl_seconds}s")
    info_table.add_row("Request Timeout:", f"{settings.request_timeout_seconds}s")

    console.print(info_table)


@app.callback(invoke_without_command=True)
def main_callback(
    version: Optional[bool] = typer.Option(None, "--version", help="Show version information"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Patient Records command line."""
    setup_logging(use_json=settings.json_logs, log_level="DEBUG" if verbose else settings.log_level)
    if version:
        console.print(f"Patient Records v{__version__}")
        raise typer.Exit()
    logging.getLogger(__name__).debug("CLI started")


if __name__ == "__main__":
    app()
