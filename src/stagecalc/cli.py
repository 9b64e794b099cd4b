"""Command-line interface for stagecalc."""

from __future__ import annotations

import json
import math
from pathlib import Path

import click

from stagecalc import __version__


@click.group()
@click.version_option(version=__version__, prog_name="stagecalc")
def main() -> None:
    """stagecalc -- multi-stage process timeline calculator.

    Rows are spreadsheet-style inputs and formula outputs; every output
    is recomputed from the inputs on each command.
    """


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _parse_pairs(items: tuple[str, ...], option: str) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for item in items:
        if "=" not in item:
            raise click.ClickException(f"Invalid {option} format: {item!r}. Use id=value.")
        k, v = item.split("=", 1)
        pairs.append((k.strip(), v.strip()))
    return pairs


def _load(project: str):
    from stagecalc.logging import set_project_dir
    from stagecalc.project import load_project_config, load_project_rows
    from stagecalc.registry import ConfigError

    project_dir = Path(project)
    try:
        config = load_project_config(project_dir)
        set_project_dir(project_dir)
        rows = load_project_rows(project_dir)
    except ConfigError as e:
        raise click.ClickException(str(e))
    return config, rows


def _fmt(value: float) -> str:
    if math.isnan(value):
        return "—"
    return f"{value:.6g}"


# ---------------------------------------------------------------------------
# New
# ---------------------------------------------------------------------------


@main.command()
@click.argument("directory", type=click.Path())
def new(directory: str) -> None:
    """Scaffold a demo project at DIRECTORY."""
    from stagecalc.project import scaffold_project

    try:
        result = scaffold_project(Path(directory))
    except FileExistsError as e:
        raise click.ClickException(str(e))
    click.echo(f"Created project at {result}")


# ---------------------------------------------------------------------------
# Compute
# ---------------------------------------------------------------------------


@main.command()
@click.option("--project", default=".", type=click.Path(exists=True), help="Project directory.")
@click.option("--set", "overrides", multiple=True, help="Set an input's display value as id=value.")
@click.option("--unit", "units", multiple=True, help="Select a row's display unit as id=label.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--output", "output", default=None, type=click.Path(), help="Write the results table to a CSV file.")
def compute(project: str, overrides: tuple[str, ...], units: tuple[str, ...], as_json: bool, output: str | None) -> None:
    """Compute every row of the project."""
    from stagecalc.engine import compute_all, results_frame
    from stagecalc.project import engine_options
    from stagecalc.state import build_initial_state, set_display_value, set_unit

    config, calc = _load(project)
    rows = calc.rows

    state = build_initial_state(rows)
    try:
        for row_id, label in _parse_pairs(units, "--unit"):
            state = set_unit(state, rows, row_id, label)
        for row_id, value in _parse_pairs(overrides, "--set"):
            state = set_display_value(state, rows, row_id, value)
    except ValueError as e:
        raise click.ClickException(str(e))

    result = compute_all(rows, state, **engine_options(config))
    frame = results_frame(rows, state, result)

    if output:
        frame.write_csv(output)

    if as_json:
        out = {
            "passes": result.passes,
            "converged": result.converged,
            "rows": [
                {
                    k: (None if isinstance(v, float) and not math.isfinite(v) else v)
                    for k, v in rec.items()
                }
                for rec in frame.to_dicts()
            ],
            "diagnostics": [d.model_dump() for d in result.diagnostics],
        }
        click.echo(json.dumps(out, indent=2))
        return

    key_outputs = set(calc.key_outputs)
    section = None
    for rec in frame.iter_rows(named=True):
        if rec["section"] != section:
            section = rec["section"]
            click.echo(f"[{section or '-'}]")
        marker = "*" if rec["id"] in key_outputs else " "
        unit = rec["unit"] or ""
        click.echo(f" {marker} {rec['label']:<28} {_fmt(rec['display_value']):>14} {unit}".rstrip())
    if not result.converged:
        click.echo(f"warning: no fixed point after {result.passes} passes", err=True)
    if output:
        click.echo(f"Wrote {output}")


# ---------------------------------------------------------------------------
# Formula
# ---------------------------------------------------------------------------


@main.command()
@click.argument("row_id")
@click.option("--project", default=".", type=click.Path(exists=True), help="Project directory.")
def formula(row_id: str, project: str) -> None:
    """Show ROW_ID's formula in readable form."""
    from stagecalc.formulas import readable_formula

    config, calc = _load(project)
    try:
        row = calc.row(row_id)
    except KeyError as e:
        raise click.ClickException(str(e.args[0]))
    if not row.formula:
        raise click.ClickException(f"Row {row_id!r} has no formula")
    click.echo(
        readable_formula(
            row.formula,
            calc.rows,
            value_column=config["value_column"],
            factor_column=config["factor_column"],
        )
    )


# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------


@main.command()
@click.argument("base_unit")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def units(base_unit: str, as_json: bool) -> None:
    """List the display units offered for BASE_UNIT."""
    from stagecalc.units import unit_options_for_base

    options = unit_options_for_base(base_unit)
    if as_json:
        click.echo(json.dumps([o.model_dump() for o in options], indent=2))
        return
    if not options:
        click.echo(f"No units for {base_unit!r} (dimensionless).")
        return
    for o in options:
        click.echo(f"{o.label:<12} {o.to_base:g}")


# ---------------------------------------------------------------------------
# Doctor
# ---------------------------------------------------------------------------


@main.command()
@click.option("--project", default=".", type=click.Path(exists=True), help="Project directory.")
def doctor(project: str) -> None:
    """Report references that read as blank and formulas that fail."""
    from stagecalc.engine import compute_all
    from stagecalc.project import engine_options
    from stagecalc.state import build_initial_state

    config, calc = _load(project)
    result = compute_all(calc.rows, build_initial_state(calc.rows), **engine_options(config))
    if not result.diagnostics:
        click.echo(f"OK: {len(calc.rows)} rows, fixed point after {result.passes} passes")
        return
    for d in result.diagnostics:
        where = d.row_id or "-"
        click.echo(f"{d.code:<18} {where:<20} {d.message}")
    raise SystemExit(1)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command("events")
@click.option("--project", default=".", type=click.Path(exists=True), help="Project directory.")
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--limit", default=50, type=int, help="Maximum events to show.")
def events_cmd(project: str, level: str | None, event_type: str | None, limit: int) -> None:
    """Show the project's event log, newest first."""
    from stagecalc.logging import EventSink
    from stagecalc.project import load_project_config
    from stagecalc.registry import ConfigError

    try:
        config = load_project_config(Path(project))
    except ConfigError as e:
        raise click.ClickException(str(e))
    sink = EventSink(Path(project), tail_bytes=config["logging_tail_bytes"])
    events = sink.read_events(level=level, event_type=event_type, limit=limit)

    if not events:
        click.echo("No events found.")
        return

    for evt in events:
        line = f"[{evt.get('ts', '')}] {evt.get('level', '').upper():7s} {evt.get('event_type', '')}: {evt.get('message', '')}"
        if evt.get("error_code"):
            line += f"  ({evt['error_code']})"
        click.echo(line)
