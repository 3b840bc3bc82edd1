"""
Brand Ingest - CLI Entry Point.
Production-grade CLI using Click and Rich.
"""

import sys
import asyncio
import json
import logging
from pathlib import Path
from functools import wraps

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.panel import Panel
from rich.table import Table
from rich.logging import RichHandler

from brand_ingest import __version__
from brand_ingest.config.settings import get_settings
from brand_ingest.models.schemas import BrandProfile
from brand_ingest.pipeline.orchestrator import IngestionPipeline
from brand_ingest.services.ingest_service import (
    ApiError,
    format_error_response,
    ingest_brand,
    status_code_for,
)
from brand_ingest.utils.logger import setup_logging
from brand_ingest.utils.retry import ScraperError
from brand_ingest.utils.url_guard import assert_public_hostname, normalize_url

# Initialize Rich Console
console = Console()
err_console = Console(stderr=True)

# =============================================================================
# Helper Functions
# =============================================================================

def async_command(f):
    """Decorator to run async click commands."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))
    return wrapper

def setup_logger(verbose: bool):
    """Configure logging based on verbosity. Logs go to stderr so --json stays clean."""
    settings = get_settings()
    level = "DEBUG" if verbose else settings.log_level
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)]
    )
    setup_logging(
        level=level,
        json_format=settings.log_json,
        log_file=str(settings.log_file) if settings.log_file else None,
    )


def render_profile(profile: BrandProfile, duration: float) -> None:
    """Summary table plus the catalog."""
    table = Table(title="Brand Profile", show_header=False)
    table.add_row("Name", profile.name)
    table.add_row("Website", profile.website)
    table.add_row("Logo", profile.logo_url or "[dim]none[/dim]")
    table.add_row("Hero", profile.hero_image.url if profile.hero_image else "[dim]none[/dim]")
    table.add_row(
        "Colors",
        " ".join(f"[on {c}]  [/] {c}" for c in (profile.colors.primary, profile.colors.background, profile.colors.text)),
    )
    table.add_row("Fonts", f"{profile.fonts.heading} / {profile.fonts.body}")
    table.add_row("Voice", "; ".join(profile.voice_hints[:3]) or "[dim]none[/dim]")
    table.add_row("Duration", f"{duration:.2f}s")
    console.print(table)

    if profile.catalog:
        catalog = Table(title=f"Catalog ({len(profile.catalog)})", show_header=True, header_style="bold magenta")
        catalog.add_column("Title")
        catalog.add_column("Price")
        catalog.add_column("URL", overflow="fold")
        for product in profile.catalog:
            catalog.add_row(product.title, product.price, product.url)
        console.print(catalog)

# =============================================================================
# CLI Group
# =============================================================================

@click.group()
@click.version_option(version=__version__)
def cli():
    """Brand Ingest: website URL to brand profile"""
    pass

# =============================================================================
# Commands
# =============================================================================

@cli.command()
@click.argument('url')
@click.option('--json', 'as_json', is_flag=True, help='Print the profile as JSON')
@click.option('--strict', is_flag=True, help='Fail with an API error instead of a fallback profile')
@click.option('--verbose', is_flag=True, help='Detailed logging')
@async_command
async def ingest(url: str, as_json: bool, strict: bool, verbose: bool):
    """
    Ingest a brand website.

    URL: The brand's website (e.g., acme.com)
    """
    setup_logger(verbose)
    settings = get_settings()
    start_time = asyncio.get_running_loop().time()

    if not as_json:
        console.print(Panel.fit(f"[bold blue]Brand Ingestion[/bold blue]\nTarget: [cyan]{url}[/cyan]"))

    async with IngestionPipeline(settings=settings) as pipeline:
        try:
            if as_json:
                profile = await (ingest_brand(url, pipeline) if strict else pipeline.run(url))
            else:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    console=console
                ) as progress:
                    task = progress.add_task("[cyan]Scraping...", total=None)
                    profile = await (ingest_brand(url, pipeline) if strict else pipeline.run(url))
                    progress.update(task, completed=True, description="[green]Done")
        except ApiError as e:
            body = format_error_response(e)
            if as_json:
                click.echo(json.dumps(body, indent=2))
            else:
                console.print(f"[bold red]{body['error']['code']}[/bold red] ({status_code_for(e.code)}): {e.message}")
            sys.exit(1)

    if as_json:
        click.echo(profile.to_json())
        return

    render_profile(profile, asyncio.get_running_loop().time() - start_time)


@cli.command()
@click.argument('file_path', type=click.Path(exists=True))
@click.option('--output-dir', default='outputs/profiles', help='Output directory')
@click.option('--concurrency', default=2, help='Max concurrent ingestions')
@async_command
async def batch(file_path: str, output_dir: str, concurrency: int):
    """
    Ingest multiple websites from a file.

    FILE_PATH: Text file with one URL per line.
    """
    setup_logger(False)

    urls = [line.strip() for line in Path(file_path).read_text().splitlines() if line.strip()]

    if not urls:
        console.print("[red]No URLs found in file.[/red]")
        sys.exit(1)

    console.print(f"[bold]Batch Processing [cyan]{len(urls)}[/cyan] sites with concurrency [cyan]{concurrency}[/cyan][/bold]")

    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    semaphore = asyncio.Semaphore(concurrency)

    # One pipeline, one browser, shared by every run
    async with IngestionPipeline(settings=get_settings()) as pipeline:

        async def process_one(index, url):
            async with semaphore:
                profile = await pipeline.run(url)
                # Names can repeat (fallbacks), so prefix the input position
                slug = profile.name.lower().replace(" ", "-").replace("/", "-")
                (out_dir / f"{index:03d}-{slug}.json").write_text(profile.to_json(), encoding="utf-8")
                return url, profile

        with Progress(console=console) as progress:
            task = progress.add_task("[cyan]Processing...", total=len(urls))
            results = []
            for coro in asyncio.as_completed([process_one(i, u) for i, u in enumerate(urls, 1)]):
                url, profile = await coro
                progress.advance(task)
                results.append((url, profile))
                console.print(f"[green]✓ {url}[/green] -> {profile.name} ({len(profile.catalog)} products)")

    with_catalog = sum(1 for _, p in results if p.catalog)
    console.print(Panel(f"Batch Complete\nProfiles: [green]{len(results)}[/green]\nWith products: [cyan]{with_catalog}[/cyan]"))


@cli.command()
@click.argument('url')
def check_url(url: str):
    """Normalize a URL and run the private-host check without fetching it."""
    try:
        normalized = normalize_url(url)
        assert_public_hostname(normalized)
    except ScraperError as e:
        console.print(f"[bold red]Rejected:[/bold red] {e}")
        sys.exit(1)
    console.print(f"[green]OK[/green] {normalized}")


@cli.command()
def show_config():
    """Print the effective configuration."""
    try:
        settings = get_settings()
    except Exception as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Setting")
    table.add_column("Value")
    for name, value in settings.model_dump().items():
        table.add_row(name, str(value))
    console.print(table)

if __name__ == "__main__":
    cli()
