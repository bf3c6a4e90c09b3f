"""CLI entry-point: import products and run the generation pipeline locally."""

import asyncio
import json

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from productkit.config import get_settings
from productkit.jobs import GenerationJob, GenerationRequest, JobStatus
from productkit.repositories import get_product_repository, get_user_repository
from productkit.schemas.models import Product, User
from productkit.services import build_services

app = typer.Typer(help="ProductKit marketing asset generator")


def _load_json(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def parse_counts(values: list[str]) -> dict[str, int]:
    """Parse ``TAG=N`` pairs."""
    counts: dict[str, int] = {}
    for value in values:
        tag, sep, n = value.partition("=")
        if not sep or not tag.strip() or not n.strip().isdigit() or int(n) < 1:
            raise typer.BadParameter(f"Expected TAG=N, got {value!r}")
        counts[tag.strip()] = int(n)
    return counts


@app.command("import-product")
def import_product(
    path: str = typer.Argument(..., help="Path to a product JSON file"),
):
    """Create or replace a product from a JSON file."""
    console = Console()
    try:
        product = Product.model_validate(_load_json(path))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    asyncio.run(get_product_repository(get_settings()).replace(product))
    console.print(f"Imported product [bold]{product.id}[/bold] ({product.name})")


@app.command("import-user")
def import_user(
    path: str = typer.Argument(..., help="Path to a user JSON file"),
):
    """Create or replace a product owner (with optional store credentials)."""
    console = Console()
    try:
        user = User.model_validate(_load_json(path))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    asyncio.run(get_user_repository(get_settings()).replace(user))
    console.print(f"Imported user [bold]{user.id}[/bold]")


async def _generate(product_id: str, request: GenerationRequest, console: Console) -> GenerationJob | None:
    services = build_services()
    try:
        job_id = services.manager.enqueue(product_id, request)
        console.print(f"Job [bold]{job_id}[/bold] queued")
        async for event in services.publisher.stream(product_id):
            if event.type == "connected":
                continue
            console.print(f"[{event.progress:>3}%] {event.message}")
        return await services.manager.wait(job_id)
    finally:
        await services.aclose()


def _print_job(console: Console, job: GenerationJob) -> None:
    table = Table(title=f"Job {job.job_id}")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Duration (ms)", justify="right")
    for step in job.steps:
        table.add_row(step.name, step.status.value, str(step.duration_ms or ""))
    console.print(table)
    for url in job.generated_images or []:
        console.print(f"  image: {url}")
    if job.generated_3d_asset_url:
        console.print(f"  3D model: {job.generated_3d_asset_url}")


@app.command()
def generate(
    product_id: str = typer.Argument(..., help="Product id"),
    asset_type: list[str] = typer.Option(["hero"], "--asset-type", help="Asset type tag (repeatable)"),
    count: list[str] = typer.Option([], "--count", help="Requested count per tag, e.g. hero=3"),
    style: str = typer.Option(None, help="Optional style hint"),
):
    """Run the generation pipeline for a product and follow it to completion."""
    console = Console()
    request = GenerationRequest(
        asset_types=frozenset(asset_type),
        count_by_type=parse_counts(count),
        style=style,
    )
    job = asyncio.run(_generate(product_id, request, console))
    if job is None:
        console.print("[red]Error: job record missing[/red]")
        raise typer.Exit(1)
    _print_job(console, job)
    if job.status != JobStatus.COMPLETED:
        console.print(f"[red]Error: {job.error_message or job.status.value}[/red]")
        raise typer.Exit(1)
    console.print("[green]Done.[/green]")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(None, help="Port (default from PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the FastAPI backend with uvicorn."""
    import uvicorn

    uvicorn.run("backend.main:app", host=host, port=port or get_settings().port, reload=reload)


if __name__ == "__main__":
    app()
