"""
CLI interface for falcon-cost.

Provides command-line access to cost estimates, spend totals and the
generation history.
"""

import sys
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from falcon_cost.config.logging_setup import setup_logging
from falcon_cost.core.models import CostEstimate
from falcon_cost.core.pricing import CATALOG
from falcon_cost.storage.models import Generation
from falcon_cost.sdk.tracker import CostTracker

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def _get_tracker() -> CostTracker:
    """Build the tracker from the user's configuration."""
    return CostTracker()


def _open_tracker() -> CostTracker:
    try:
        return _get_tracker()
    except (ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading config:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _format_cost(amount: float, currency: str = "USD") -> str:
    """Format a cost with a dollar sign for USD, the currency code otherwise."""
    if currency == "USD":
        return f"${amount:,.3f}"
    return f"{amount:,.3f} {currency}"


def _display_estimate(estimate: CostEstimate) -> None:
    console.print(
        f"Est. cost: [yellow]{_format_cost(estimate.cost, estimate.currency)}[/] "
        f"[dim]({estimate.estimate_source.value})[/]"
    )
    console.print(f"[dim]Endpoint: {estimate.endpoint_id}[/]")
    if estimate.unit_price is not None and estimate.unit:
        console.print(
            f"[dim]Unit price: {_format_cost(float(estimate.unit_price), estimate.currency)}"
            f"/{estimate.unit} x {estimate.unit_quantity:g}[/]"
        )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")
):
    """falcon-cost CLI."""
    setup_logging(verbose=verbose)
    if ctx.invoked_subcommand is None:
        console.print("falcon-cost - Use --help to see available commands")


@app.command()
def models():
    """List supported models with their endpoints and flat rates."""
    table = Table(title="Models")
    table.add_column("Alias")
    table.add_column("Name")
    table.add_column("Endpoint")
    table.add_column("Type")
    table.add_column("Pricing")
    for alias, spec in CATALOG.models.items():
        table.add_row(alias, spec.name, spec.endpoint, spec.type.value, spec.pricing_label)
    console.print(table)


@app.command()
def estimate(
    model: str = typer.Argument(..., help="Model alias, e.g. banana"),
    resolution: Optional[str] = typer.Option(None, "--resolution", "-r", help="1K, 2K or 4K"),
    num_images: int = typer.Option(1, "--num-images", "-n", min=1, help="Number of images")
):
    """Estimate the cost of a generation."""
    with _open_tracker() as tracker:
        result = tracker.estimate_generation_cost(model, resolution, num_images)
    _display_estimate(result)


@app.command("estimate-upscale")
def estimate_upscale(
    model: str = typer.Argument(..., help="Upscaler alias: clarity or crystal"),
    scale: float = typer.Option(2.0, "--scale", "-s", min=1.0, help="Linear scale factor"),
    width: Optional[int] = typer.Option(None, "--width", help="Input width in pixels"),
    height: Optional[int] = typer.Option(None, "--height", help="Input height in pixels")
):
    """Estimate the cost of an upscale."""
    with _open_tracker() as tracker:
        result = tracker.estimate_upscale_cost(model, scale, width, height)
    _display_estimate(result)


@app.command("estimate-rmbg")
def estimate_rmbg(
    model: str = typer.Argument(..., help="Background remover alias: rmbg or bria")
):
    """Estimate the cost of a background removal."""
    with _open_tracker() as tracker:
        result = tracker.estimate_background_removal_cost(model)
    _display_estimate(result)


@app.command()
def record(
    prompt: str = typer.Option(..., "--prompt", "-p", help="Prompt used"),
    model: str = typer.Option(..., "--model", "-m", help="Model alias"),
    output: str = typer.Option(..., "--output", "-o", help="Path of the saved image"),
    aspect: str = typer.Option("1:1", "--aspect", "-a", help="Aspect ratio"),
    resolution: str = typer.Option("2K", "--resolution", "-r", help="Resolution"),
    num_images: int = typer.Option(1, "--num-images", "-n", min=1, help="Number of images"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed returned by the API"),
    edited_from: Optional[str] = typer.Option(None, "--edited-from", help="Source image of an edit")
):
    """Record a completed generation in the history ledger."""
    with _open_tracker() as tracker:
        cost_estimate = tracker.estimate_generation_cost(model, resolution, num_images)
        generation = Generation.create(
            prompt=prompt,
            model=model,
            aspect=aspect,
            resolution=resolution,
            output=output,
            estimate=cost_estimate,
            seed=seed,
            edited_from=edited_from,
        )
        try:
            ledger = tracker.add_generation(generation)
        except OSError as e:
            console.print(f"[red]Error saving history:[/] {str(e)}")
            sys.exit(EXIT_CODE_FAIL)

    totals = ledger.total_cost[generation.currency]
    console.print(f"[green]✓[/] Recorded {generation.id}")
    console.print(f"Cost: [yellow]{_format_cost(generation.cost, generation.currency)}[/]")
    console.print(
        f"[dim]Session: {_format_cost(totals.session, generation.currency)} | "
        f"Today: {_format_cost(totals.today, generation.currency)}[/]"
    )


@app.command()
def last():
    """Show the most recent generation."""
    with _open_tracker() as tracker:
        generation = tracker.get_last_generation()

    if generation is None:
        console.print("[dim]No generations yet.[/]")
        return

    console.print("\n[bold]Last Generation[/bold]")
    console.print("-" * 40)
    console.print(f"Prompt: {generation.prompt}")
    console.print(f"Model:  {generation.model}")
    console.print(f"Aspect: {generation.aspect} | Resolution: {generation.resolution}")
    console.print(f"Output: {generation.output}")
    console.print(f"Cost:   [yellow]{_format_cost(generation.cost, generation.currency)}[/]")
    if generation.cost_details is not None:
        console.print(f"[dim]Estimate source: {generation.cost_details.estimate_source.value}[/]")
    console.print(f"Time:   {generation.timestamp}")


@app.command()
def totals():
    """Show session, today and all-time spend per currency."""
    with _open_tracker() as tracker:
        ledger = tracker.load_history()

    table = Table(title="Spend")
    table.add_column("Currency")
    table.add_column("Session", justify="right")
    table.add_column("Today", justify="right")
    table.add_column("All time", justify="right")
    for currency, bucket in sorted(ledger.total_cost.items()):
        table.add_row(
            currency,
            _format_cost(bucket.session, currency),
            _format_cost(bucket.today, currency),
            _format_cost(bucket.all_time, currency),
        )
    console.print(table)
    console.print(f"[dim]{len(ledger.generations)} generation(s) in history[/]")


@app.command("refresh-pricing")
def refresh_pricing(
    models: Optional[List[str]] = typer.Argument(None, help="Model aliases (default: all)")
):
    """Fetch current prices and update the pricing cache."""
    with _open_tracker() as tracker:
        try:
            prices = tracker.refresh_pricing(models)
        except Exception as e:
            console.print(f"[red]Error refreshing pricing:[/] {str(e)}")
            sys.exit(EXIT_CODE_FAIL)

    table = Table(title="Cached Prices")
    table.add_column("Endpoint")
    table.add_column("Unit price", justify="right")
    table.add_column("Unit")
    table.add_column("Currency")
    for endpoint_id, entry in sorted(prices.items()):
        table.add_row(endpoint_id, f"{entry.unit_price}", entry.unit, entry.currency)
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


if __name__ == "__main__":
    app()
