from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from .allocation import AllocationEngine
from .config import TIMESTAMP_FORMAT, AllocatorConfig, GenerationConfig
from .data_generation import generate_snapshot
from .errors import AllocationError
from .logging_utils import configure_logging
from .models import AllocationResult, Snapshot
from .reporting import daily_report, decisions_to_df
from .storage import CsvStore

console = Console()
app = typer.Typer(add_completion=False, no_args_is_help=True)


def _store(data_dir: Optional[Path], verbose: bool) -> CsvStore:
    configure_logging(logging.DEBUG if verbose else logging.INFO, console=console)
    return CsvStore(data_dir)


def _fail(exc: AllocationError) -> NoReturn:
    console.print(f"[bold red]Error:[/] {exc}")
    raise typer.Exit(code=1)


@app.command("init")
def init(
    data_dir: Optional[Path] = typer.Option(None, help="Directory holding the CSV tables; defaults to package data/."),
    verbose: bool = typer.Option(False, help="Log at DEBUG level."),
) -> None:
    """Create the data directory and empty tables."""
    store = _store(data_dir, verbose)
    store.initialize()
    console.log(f"Store ready at {store.data_dir}")


@app.command("allocate")
def allocate(
    emit_no_bed_skips: bool = typer.Option(
        False, help="Record NO_BED_AVAILABLE for patients left waiting once beds run out."
    ),
    dry_run: bool = typer.Option(False, help="Show decisions without writing them back."),
    csv_out: Optional[Path] = typer.Option(None, help="Path to save the decision log."),
    png_out: Optional[Path] = typer.Option(None, help="Path to save a batch overview plot."),
    data_dir: Optional[Path] = typer.Option(None, help="Directory holding the CSV tables; defaults to package data/."),
    verbose: bool = typer.Option(False, help="Log at DEBUG level."),
) -> None:
    """Allocate free beds to waiting patients by urgency."""
    store = _store(data_dir, verbose)
    engine = AllocationEngine(AllocatorConfig(emit_no_bed_skips=emit_no_bed_skips))
    try:
        snapshot = store.load_snapshot()
        console.log(
            f"Allocating {len(snapshot.beds)} free beds across {len(snapshot.patients)} waiting patients...",
            style="bold",
        )
        result = engine.run(snapshot)
        if not dry_run:
            store.commit(result)
    except AllocationError as exc:
        _fail(exc)

    _print_decisions(snapshot, result)
    for line in result.summary.messages():
        console.print(line)
    if dry_run:
        console.print("[yellow]Dry run: nothing was written.[/]")

    if csv_out:
        decisions_to_df(result.decisions).to_csv(csv_out, index=False)
        console.log(f"Saved decision log to {csv_out}")
    if png_out:
        from .visualize import plot_batch

        plot_batch(snapshot.patients, result, snapshot.inventory, outfile=png_out)
        console.log(f"Saved plot to {png_out}")


@app.command("release")
def release(
    bed_id: int = typer.Argument(..., help="Bed to mark free."),
    data_dir: Optional[Path] = typer.Option(None, help="Directory holding the CSV tables; defaults to package data/."),
    verbose: bool = typer.Option(False, help="Log at DEBUG level."),
) -> None:
    """Mark an occupied bed as free."""
    store = _store(data_dir, verbose)
    try:
        store.release_bed(bed_id)
    except AllocationError as exc:
        _fail(exc)
    console.print(f"Bed {bed_id} released.")


@app.command("add-patient")
def add_patient(
    patient_id: int = typer.Option(..., "--id", help="Patient id."),
    name: str = typer.Option(..., help="Display name."),
    urgency: int = typer.Option(..., help="Urgency (1-10, higher first)."),
    resource: str = typer.Option("", help="Required resource (blank if none)."),
    data_dir: Optional[Path] = typer.Option(None, help="Directory holding the CSV tables; defaults to package data/."),
    verbose: bool = typer.Option(False, help="Log at DEBUG level."),
) -> None:
    """Add a patient to the waiting list."""
    store = _store(data_dir, verbose)
    try:
        store.add_patient(patient_id, name, urgency, resource)
    except AllocationError as exc:
        _fail(exc)
    console.print("Inserted patient.")


@app.command("add-bed")
def add_bed(
    bed_id: int = typer.Option(..., "--id", help="Bed id."),
    ward: str = typer.Option(..., help="Ward label."),
    bed_type: str = typer.Option(..., help="Bed type label."),
    data_dir: Optional[Path] = typer.Option(None, help="Directory holding the CSV tables; defaults to package data/."),
    verbose: bool = typer.Option(False, help="Log at DEBUG level."),
) -> None:
    """Add a free bed."""
    store = _store(data_dir, verbose)
    try:
        store.add_bed(bed_id, ward, bed_type)
    except AllocationError as exc:
        _fail(exc)
    console.print("Inserted bed.")


@app.command("add-resource")
def add_resource(
    name: str = typer.Option(..., help="Resource name."),
    quantity: int = typer.Option(..., help="Units on hand."),
    data_dir: Optional[Path] = typer.Option(None, help="Directory holding the CSV tables; defaults to package data/."),
    verbose: bool = typer.Option(False, help="Log at DEBUG level."),
) -> None:
    """Add a resource to the inventory."""
    store = _store(data_dir, verbose)
    try:
        store.add_resource(name, quantity)
    except AllocationError as exc:
        _fail(exc)
    console.print("Added resource.")


@app.command("report")
def report(
    data_dir: Optional[Path] = typer.Option(None, help="Directory holding the CSV tables; defaults to package data/."),
    verbose: bool = typer.Option(False, help="Log at DEBUG level."),
) -> None:
    """Print occupancy, waiting list size and resource inventory."""
    store = _store(data_dir, verbose)
    try:
        daily = daily_report(store)
    except AllocationError as exc:
        _fail(exc)
    _print_metrics(daily.metrics(), title="Daily Report")
    _print_metrics(daily.inventory, title="Resource inventory")


@app.command("generate")
def generate(
    seed: int = typer.Option(42, help="Random seed."),
    patients: int = typer.Option(40, min=0, help="Number of waiting patients."),
    beds: int = typer.Option(25, min=0, help="Number of free beds."),
    data_dir: Optional[Path] = typer.Option(None, help="Directory holding the CSV tables; defaults to package data/."),
    verbose: bool = typer.Option(False, help="Log at DEBUG level."),
) -> None:
    """Overwrite the store with a synthetic dataset."""
    store = _store(data_dir, verbose)
    snapshot = generate_snapshot(GenerationConfig(seed=seed, patients=patients, beds=beds))
    store.save_snapshot(snapshot)
    console.log(
        f"Wrote {len(snapshot.patients)} patients, {len(snapshot.beds)} beds and "
        f"{len(snapshot.inventory)} resources to {store.data_dir}"
    )


def _print_decisions(snapshot: Snapshot, result: AllocationResult) -> None:
    lookup = {p.patient_id: p for p in snapshot.patients}
    table = Table(title="Allocation decisions", show_header=True, header_style="bold magenta")
    for column in ["Patient", "Name", "Urgency", "Outcome", "Bed", "Resource", "Reason", "Time"]:
        table.add_column(column)
    for d in result.decisions:
        patient = lookup[d.patient_id]
        style = "green" if d.granted else "yellow"
        table.add_row(
            str(d.patient_id),
            patient.name,
            str(patient.urgency),
            f"[{style}]{d.outcome.value}[/]",
            "" if d.bed_id is None else str(d.bed_id),
            d.resource_used or "",
            d.skip_reason.value if d.skip_reason else "",
            d.timestamp.strftime(TIMESTAMP_FORMAT),
        )
    console.print(table)
    s = result.summary
    console.print(f"Granted {s.granted}, skipped {s.skipped}, not reached {s.unprocessed}.")


def _print_metrics(metrics: Dict[str, int], title: str) -> None:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Metric")
    table.add_column("Value")
    for key, val in metrics.items():
        table.add_row(key, str(val))
    console.print(table)
