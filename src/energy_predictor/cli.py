"""Command-line interface for energy usage and cost projections."""

import functools
import json
import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Sequence

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.table import Table

from . import db, insights
from .models import FixedRates, ProjectionConfig, ProjectionResult, Session, TariffBand
from .projection import (
    InvalidInputError,
    build_config,
    calculate_projection,
    month_breakdown,
    validate_rates,
)
from .projection import project as run_projection
from .reports.projection import generate_comparison_report, generate_projection_report
from .sessions import SessionRepository, compare_sessions, create_session
from .store import KeyValueStore, StorageError
from .tariffs import BAND_NAMES, TariffDefaults, derive_bands, load_defaults

console = Console()

# Option prefixes for the editable future quarter bands
QUARTER_OPTIONS = (("q2", BAND_NAMES[1]), ("q3", BAND_NAMES[2]))


@click.group()
@click.option("--db-path", type=click.Path(), help="Path to SQLite database")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, db_path, verbose):
    """Energy usage predictor - project electricity usage and cost."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = Path(db_path) if db_path else None
    ctx.obj["store"] = KeyValueStore(ctx.obj["db_path"])


def projection_options(f):
    """Options shared by every command that runs a projection."""
    options = [
        click.option("--config", "config_path", type=click.Path(exists=True), help="Path to tariffs.yaml"),
        click.option("--usage", help="Monthly kWh, comma separated (repeats cyclically)"),
        click.option("--peak", "peak_percentage", type=int, help="Percentage of usage at peak rate (0-100)"),
        click.option("--months", type=int, help="Number of months to project"),
        click.option("--current-month", type=click.IntRange(1, 12), help="Current month (1-12), defaults to today"),
        click.option("--fixed/--variable", "is_fixed", default=None, help="Use fixed rates instead of seasonal bands"),
        click.option("--fixed-peak", type=float, help="Fixed peak unit rate (p/kWh)"),
        click.option("--fixed-off-peak", type=float, help="Fixed off-peak unit rate (p/kWh)"),
        click.option("--fixed-standing", type=float, help="Fixed standing charge (p/day)"),
        click.option("--band-peak", type=float, help="Current band peak unit rate (p/kWh)"),
        click.option("--band-off-peak", type=float, help="Current band off-peak unit rate (p/kWh)"),
        click.option("--band-standing", type=float, help="Current band standing charge (p/day)"),
    ]
    for prefix, name in QUARTER_OPTIONS:
        options += [
            click.option(f"--{prefix}-peak", type=float, help=f"Override {name} peak unit rate (p/kWh)"),
            click.option(f"--{prefix}-off-peak", type=float, help=f"Override {name} off-peak unit rate (p/kWh)"),
            click.option(f"--{prefix}-standing", type=float, help=f"Override {name} standing charge (p/day)"),
        ]
    for option in reversed(options):
        f = option(f)
    return f


def _pick(value, default):
    return default if value is None else value


def _session_defaults(session: Session) -> TariffDefaults:
    config = session.config
    return TariffDefaults(
        usage_basis=session.usage_basis,
        peak_percentage=config.peak_percentage,
        months=config.month_count,
        fixed_rates=config.fixed_rates,
        current_band=config.current_band,
    )


def _edited_bands(bands: Sequence[TariffBand], options: dict) -> list[TariffBand]:
    """Apply --q2-*/--q3-* overrides to the future quarter bands."""
    edited = list(bands)
    for index, (prefix, _) in enumerate(QUARTER_OPTIONS, start=1):
        if index >= len(edited):
            break
        band = edited[index]
        edited[index] = replace(
            band,
            peak_unit_rate=_pick(options.get(f"{prefix}_peak"), band.peak_unit_rate),
            off_peak_unit_rate=_pick(options.get(f"{prefix}_off_peak"), band.off_peak_unit_rate),
            standing_charge=_pick(options.get(f"{prefix}_standing"), band.standing_charge),
        )
    return edited


def _config_from_options(options: dict, session: Session | None = None) -> tuple[ProjectionConfig, str]:
    """Resolve CLI options against a saved session or tariffs.yaml defaults.

    A saved session keeps its own quarter bands unless the current band or
    month is changed, in which case they are derived again.
    """
    if session is not None:
        defaults = _session_defaults(session)
        default_month = session.config.current_month
        default_fixed = session.config.is_fixed_charge
    else:
        config_path = options.get("config_path")
        defaults = load_defaults(Path(config_path) if config_path else None)
        default_month = datetime.now().month
        default_fixed = False

    usage_basis = _pick(options.get("usage"), defaults.usage_basis)
    current_month = _pick(options.get("current_month"), default_month)
    fixed_rates = FixedRates(
        peak_unit_rate=_pick(options.get("fixed_peak"), defaults.fixed_rates.peak_unit_rate),
        off_peak_unit_rate=_pick(options.get("fixed_off_peak"), defaults.fixed_rates.off_peak_unit_rate),
        standing_charge=_pick(options.get("fixed_standing"), defaults.fixed_rates.standing_charge),
    )
    current_band = TariffBand(
        name=BAND_NAMES[0],
        peak_unit_rate=_pick(options.get("band_peak"), defaults.current_band.peak_unit_rate),
        off_peak_unit_rate=_pick(options.get("band_off_peak"), defaults.current_band.off_peak_unit_rate),
        standing_charge=_pick(options.get("band_standing"), defaults.current_band.standing_charge),
    )
    validate_rates(current_band.name, current_band)

    rederive = session is None or any(
        options.get(name) is not None for name in ("current_month", "band_peak", "band_off_peak", "band_standing")
    )
    bands = derive_bands(current_band, current_month) if rederive else session.config.derived_bands

    config = build_config(
        usage=usage_basis,
        peak_percentage=_pick(options.get("peak_percentage"), defaults.peak_percentage),
        month_count=_pick(options.get("months"), defaults.months),
        current_month=current_month,
        current_band=current_band,
        fixed_rates=fixed_rates,
        is_fixed_charge=_pick(options.get("is_fixed"), default_fixed),
        derived_bands=_edited_bands(bands, options),
    )
    return config, usage_basis


def handle_errors(f):
    """Turn expected failures into console messages instead of tracebacks."""

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except InvalidInputError as e:
            console.print(f"[red]Error: {e}[/red]")
        except StorageError as e:
            console.print(f"[red]Storage error: {e}[/red]")
        except insights.InvalidApiKeyError as e:
            console.print(f"[red]{e}[/red]")
        except insights.InsightsError as e:
            console.print(f"[red]Failed to get AI insights: {e}[/red]")

    return wrapper


def _bands_table(bands: list[TariffBand], title: str = "Tariff Bands") -> Table:
    table = Table(title=title)
    table.add_column("Band", style="cyan")
    table.add_column("Peak (p/kWh)", justify="right")
    table.add_column("Off-Peak (p/kWh)", justify="right")
    table.add_column("Standing (p/day)", justify="right")
    for band in bands:
        table.add_row(
            band.name,
            f"{band.peak_unit_rate:.2f}",
            f"{band.off_peak_unit_rate:.2f}",
            f"{band.standing_charge:.2f}",
        )
    return table


def _print_projection(config: ProjectionConfig, result: ProjectionResult, title: str) -> None:
    table = Table(title=title)
    table.add_column("Month", style="cyan")
    table.add_column("Tariff")
    table.add_column("Days", justify="right")
    table.add_column("Usage (kWh)", justify="right")
    table.add_column("Peak (kWh)", justify="right")
    table.add_column("Off-Peak (kWh)", justify="right")
    table.add_column("Cost", justify="right")

    for month in month_breakdown(config):
        table.add_row(
            month.label,
            month.band_name,
            str(month.days),
            f"{month.total_kwh:g}",
            f"{month.peak_kwh:.1f}",
            f"{month.off_peak_kwh:.1f}",
            f"£{month.cost:.2f}",
        )

    console.print(table)
    console.print(
        f"Peak {config.peak_percentage}% / Off-peak {config.off_peak_percentage}%, "
        f"{'fixed rates' if config.is_fixed_charge else 'seasonal tariff bands'}"
    )
    console.print(f"[green]Total projected cost: £{result.total_cost:.2f}[/green]")


# Projection commands
@cli.command()
@projection_options
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--save", "save_name", help="Save the projection as a named session")
@click.option("--report", "report_path", type=click.Path(), help="Write an HTML chart report")
@click.option("--from-session", "session_ref", help="Start from a saved session (name or ID); other options override it")
@click.pass_context
@handle_errors
def project(ctx, as_json, save_name, report_path, session_ref, **options):
    """Project monthly usage and cost."""
    session = _get_session(ctx, session_ref) if session_ref else None
    config, usage_basis = _config_from_options(options, session)
    result = run_projection(config)
    if not result.ok:
        console.print(f"[red]Error: {result.error}[/red]")
        return

    if as_json:
        click.echo(
            json.dumps(
                {
                    "monthly_usage": list(result.monthly_usage),
                    "monthly_cost": list(result.monthly_cost),
                    "total_cost": result.total_cost,
                },
                indent=2,
            )
        )
    else:
        if not config.is_fixed_charge:
            console.print(_bands_table(list(config.derived_bands)))
        _print_projection(config, result, f"Projection ({config.month_count} months)")

    if report_path:
        html = generate_projection_report(result, month_breakdown(config))
        Path(report_path).write_text(html)
        console.print(f"[green]Report written to {report_path}[/green]")

    if save_name is not None:
        session = create_session(save_name, config, result, usage_basis=usage_basis)
        SessionRepository(ctx.obj["store"]).add(session)
        console.print(f"[green]Session '{session.name}' saved[/green]")


@cli.command()
@click.option("--config", "config_path", type=click.Path(exists=True), help="Path to tariffs.yaml")
@click.option("--current-month", type=click.IntRange(1, 12), help="Current month (1-12), defaults to today")
@click.option("--band-peak", type=float, help="Current band peak unit rate (p/kWh)")
@click.option("--band-off-peak", type=float, help="Current band off-peak unit rate (p/kWh)")
@click.option("--band-standing", type=float, help="Current band standing charge (p/day)")
@handle_errors
def bands(config_path, current_month, band_peak, band_off_peak, band_standing):
    """Show seasonal tariff bands derived from the current band."""
    defaults = load_defaults(Path(config_path) if config_path else None)
    current = TariffBand(
        name=BAND_NAMES[0],
        peak_unit_rate=_pick(band_peak, defaults.current_band.peak_unit_rate),
        off_peak_unit_rate=_pick(band_off_peak, defaults.current_band.off_peak_unit_rate),
        standing_charge=_pick(band_standing, defaults.current_band.standing_charge),
    )
    validate_rates(current.name, current)
    month = current_month or datetime.now().month
    console.print(_bands_table(derive_bands(current, month), title=f"Tariff Bands from month {month}"))


# Session commands
@cli.group("sessions")
def sessions_cmd():
    """Saved session commands."""
    pass


def _get_session(ctx, ref: str) -> Session:
    session = SessionRepository(ctx.obj["store"]).get(ref)
    if session is None:
        raise InvalidInputError(f"No session named '{ref}'")
    return session


@sessions_cmd.command("list")
@click.pass_context
@handle_errors
def sessions_list(ctx):
    """List saved sessions."""
    session_list = SessionRepository(ctx.obj["store"]).all()

    if not session_list:
        console.print("[yellow]No sessions found[/yellow]")
        return

    table = Table(title="Saved Sessions")
    table.add_column("Name", style="cyan")
    table.add_column("Created")
    table.add_column("Months", justify="right")
    table.add_column("Mode")
    table.add_column("Total Cost", justify="right")
    table.add_column("ID", style="dim")

    for s in session_list:
        table.add_row(
            s.name,
            s.created_at.strftime("%Y-%m-%d %H:%M"),
            str(s.config.month_count),
            "Fixed" if s.config.is_fixed_charge else "Variable",
            f"£{s.result.total_cost:.2f}",
            s.id,
        )

    console.print(table)


@sessions_cmd.command("show")
@click.argument("ref")
@click.pass_context
@handle_errors
def sessions_show(ctx, ref):
    """Show a saved session by name or ID."""
    session = _get_session(ctx, ref)
    config = session.config

    console.print(f"[cyan]{session.name}[/cyan] (saved {session.created_at.strftime('%Y-%m-%d %H:%M')})")
    console.print(f"Usage basis: {session.usage_basis}")
    if config.is_fixed_charge:
        rates = config.fixed_rates
        console.print(
            f"Fixed rates: peak {rates.peak_unit_rate:g}p/kWh, off-peak {rates.off_peak_unit_rate:g}p/kWh, "
            f"standing {rates.standing_charge:g}p/day"
        )
    else:
        console.print(_bands_table(list(config.derived_bands)))

    table = Table(title=f"{session.name} ({config.month_count} months)")
    table.add_column("Month", style="cyan")
    table.add_column("Usage (kWh)", justify="right")
    table.add_column("Cost", justify="right")
    for i, (usage, cost) in enumerate(zip(session.result.monthly_usage, session.result.monthly_cost)):
        table.add_row(f"Month {i + 1}", f"{usage:g}", f"£{cost:.2f}")
    console.print(table)
    console.print(f"[green]Total projected cost: £{session.result.total_cost:.2f}[/green]")


@sessions_cmd.command("delete")
@click.argument("ref")
@click.pass_context
@handle_errors
def sessions_delete(ctx, ref):
    """Delete a saved session by name or ID."""
    removed = SessionRepository(ctx.obj["store"]).remove(ref)
    if removed is None:
        console.print(f"[yellow]No session named '{ref}'[/yellow]")
        return
    console.print(f"[green]Deleted session '{removed.name}'[/green]")


@sessions_cmd.command("compare")
@click.argument("first")
@click.argument("second")
@click.option("--report", "report_path", type=click.Path(), help="Write an HTML comparison report")
@click.pass_context
@handle_errors
def sessions_compare(ctx, first, second, report_path):
    """Compare two saved sessions."""
    a = _get_session(ctx, first)
    b = _get_session(ctx, second)
    comparison = compare_sessions(a, b)

    table = Table(title=f"{a.name} vs {b.name}")
    table.add_column("Month", style="cyan")
    for s in comparison["series"]:
        table.add_column(f"{s['name']} kWh", justify="right")
        table.add_column(f"{s['name']} cost", justify="right")

    for i, label in enumerate(comparison["labels"]):
        row = [label]
        for s in comparison["series"]:
            row.append(f"{s['usage'][i]:g}" if i < len(s["usage"]) else "-")
            row.append(f"£{s['cost'][i]:.2f}" if i < len(s["cost"]) else "-")
        table.add_row(*row)
    console.print(table)

    for s in comparison["series"]:
        console.print(f"{s['name']}: £{s['total_cost']:.2f}")
    if comparison["cheaper"]:
        console.print(
            f"[green]{comparison['cheaper']} is cheaper by £{abs(comparison['cost_difference']):.2f}[/green]"
        )
    else:
        console.print("[yellow]Both sessions cost the same[/yellow]")

    if report_path:
        Path(report_path).write_text(generate_comparison_report(a, b))
        console.print(f"[green]Report written to {report_path}[/green]")


# AI insight commands
@cli.group("insights")
def insights_cmd():
    """AI-generated insights (requires a Gemini API key)."""
    pass


def _require_api_key(ctx) -> str | None:
    api_key = insights.get_api_key(ctx.obj["store"])
    if not api_key:
        console.print("[red]No Gemini API key. Set GEMINI_API_KEY or run 'energy-predictor key set'[/red]")
    return api_key


@insights_cmd.command("tips")
@projection_options
@click.pass_context
@handle_errors
def insights_tips(ctx, **options):
    """Get AI tips for reducing the cost of a projection."""
    api_key = _require_api_key(ctx)
    if not api_key:
        return

    config, _ = _config_from_options(options)
    result = calculate_projection(config)

    with console.status("Asking Gemini for usage tips..."):
        text = insights.get_usage_tips(config, result, api_key)
    console.print(Markdown(text))


@insights_cmd.command("compare")
@click.argument("first")
@click.argument("second")
@click.pass_context
@handle_errors
def insights_compare(ctx, first, second):
    """Get an AI summary comparing two saved sessions."""
    api_key = _require_api_key(ctx)
    if not api_key:
        return

    a = _get_session(ctx, first)
    b = _get_session(ctx, second)

    with console.status("Asking Gemini to compare sessions..."):
        text = insights.get_comparison_summary(a, b, api_key)
    console.print(Markdown(text))


# API key commands
@cli.group()
def key():
    """Gemini API key management."""
    pass


@key.command("set")
@click.argument("api_key")
@click.pass_context
@handle_errors
def key_set(ctx, api_key):
    """Save a Gemini API key in the local database."""
    insights.save_api_key(ctx.obj["store"], api_key)
    console.print("[green]API key saved. AI features are now available.[/green]")


@key.command("remove")
@click.pass_context
@handle_errors
def key_remove(ctx):
    """Remove the saved Gemini API key."""
    insights.remove_api_key(ctx.obj["store"])
    console.print("[green]API key removed[/green]")


@key.command("status")
@click.pass_context
@handle_errors
def key_status(ctx):
    """Show whether an API key is configured."""
    api_key = insights.get_api_key(ctx.obj["store"])
    if api_key:
        console.print(f"[green]API key configured (...{api_key[-4:]})[/green]")
    else:
        console.print("[yellow]No API key configured[/yellow]")


# Database commands
@cli.group()
def database():
    """Database management commands."""
    pass


@database.command("init")
@click.pass_context
def db_init(ctx):
    """Initialize the database schema."""
    db.init_db(ctx.obj["db_path"])
    console.print("[green]Database initialized successfully[/green]")


@database.command("stats")
@click.pass_context
def db_stats(ctx):
    """Show what is stored in the database."""
    db.init_db(ctx.obj["db_path"])
    stats = db.get_stats(ctx.obj["db_path"])

    table = Table(title="Database Statistics")
    table.add_column("Key", style="cyan")
    table.add_column("Size (bytes)", justify="right")
    table.add_column("Updated")
    for name, info in stats.items():
        table.add_row(name, str(info["size"]), info["updated_at"] or "N/A")

    console.print(table)


if __name__ == "__main__":
    cli()
