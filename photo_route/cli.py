from __future__ import annotations

import json
import math
import logging
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .cache import Cache
from .classifier import RoadNameClassifier, score
from .geocode import NominatimGeocoder
from .ocr import detect_candidates
from .pipeline import run_batch
from .recalculate import RouteRecalculator
from .resolver import CoordinateResolver
from .route import DEFAULT_WORKERS, RouteAggregator
from .types import BatchSummary, Route, Unresolved
from .utils import ensure_image_path, expand_image_paths

app = typer.Typer(add_completion=False, help="Rebuild a trip route from road-sign photos")
console = Console()


@app.callback()
def _setup(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")) -> None:
    load_dotenv()  # allow .env
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _aggregator(no_geocode: bool, workers: int, clear_cache: bool) -> RouteAggregator:
    geocoder = None
    if not no_geocode:
        cache = Cache()
        if clear_cache:
            cache.clear()
        geocoder = NominatimGeocoder(cache=cache)
    return RouteAggregator(CoordinateResolver(geocoder), max_workers=workers)


def _fmt_duration(seconds: float) -> str:
    minutes, _ = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m" if hours else f"{minutes}m"


def _print_route(route: Route) -> None:
    table = Table(title=f"{route.name} ({route.date:%Y-%m-%d})")
    table.add_column("#", justify="right")
    table.add_column("Captured")
    table.add_column("Road")
    table.add_column("Lat,Lon")
    table.add_column("Source")
    for i, r in enumerate(route.records, start=1):
        table.add_row(
            str(i),
            f"{r.captured_at:%H:%M:%S}",
            r.road_name or "—",
            f"{r.latitude:.5f}, {r.longitude:.5f}" if r.latitude is not None and r.longitude is not None else "?",
            r.location_source or "—",
        )
    console.print(table)
    console.print(
        f"[bold]{route.total_distance_km:.2f} km[/bold] · {_fmt_duration(route.duration_s)} · "
        f"{route.photo_count} photos · {len(route.coordinates)} located"
    )
    if route.road_names:
        console.print("Roads: " + ", ".join(route.road_names))


def _print_unresolved(unresolved: List[Unresolved], failed_roads: List[str]) -> None:
    if not unresolved:
        return
    console.print(f"[yellow]{len(unresolved)} photo(s) could not be located[/yellow]")
    if failed_roads:
        console.print("[yellow]Geocoding failed for:[/yellow] " + ", ".join(failed_roads))


def _emit_json(payload: dict, json_only: bool, json_out: Optional[Path]) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    if json_only:
        print(text)
    if json_out:
        json_out.write_text(text, encoding="utf-8")


@app.command()
def build(
    images: List[Path] = typer.Argument(..., exists=True, readable=True, help="Photos or folders of photos"),
    json_out: Optional[Path] = typer.Option(None, help="Write the route JSON to this file"),
    json_only: bool = typer.Option(False, help="Print only JSON to stdout"),
    no_geocode: bool = typer.Option(False, help="Use GPS only; do not geocode road names"),
    workers: int = typer.Option(DEFAULT_WORKERS, min=1, max=4, help="Concurrent geocoding requests"),
    clear_cache: bool = typer.Option(False, help="Clear local geocoding cache before running"),
):
    """Build a route from IMAGES."""
    paths = expand_image_paths(images)
    with console.status("Reading photos...") as status:
        summary: BatchSummary = run_batch(
            paths,
            RoadNameClassifier(),
            _aggregator(no_geocode, workers, clear_cache),
            progress=lambda n, p: status.update(f"{n}/{len(paths)} photos read ({p.name})"),
        )
    if summary.route is None:
        console.print(f"[red]{summary.message or 'No route was built.'}[/red]")
        raise typer.Exit(code=1)

    if json_only or json_out:
        payload = json.loads(summary.route.model_dump_json())
        _emit_json(payload, json_only, json_out)
    if not json_only:
        _print_route(summary.route)
        _print_unresolved(summary.unresolved, summary.failed_road_names)


@app.command()
def classify(
    image: Path = typer.Argument(..., exists=True, readable=True, help="Path to a photo"),
):
    """Show OCR candidates of IMAGE with their road-name scores."""
    candidates = detect_candidates(ensure_image_path(image))
    table = Table(title=str(image.name))
    table.add_column("Raw")
    table.add_column("Cleaned")
    table.add_column("Conf")
    table.add_column("Score", justify="right")
    for c in candidates:
        s = score(c)
        table.add_row(c.raw_text, c.cleaned_text, f"{c.confidence:.2f}", "rejected" if s == -math.inf else f"{s:.1f}")
    console.print(table)
    best = RoadNameClassifier().classify(candidates)
    console.print(f"Road name: [bold]{best}[/bold]" if best else "No road name recognized")


@app.command()
def recalc(
    route_json: Path = typer.Argument(..., exists=True, readable=True, help="Route JSON written by `build`"),
    json_out: Optional[Path] = typer.Option(None, help="Write here instead of updating ROUTE_JSON"),
    no_geocode: bool = typer.Option(False, help="Use stored coordinates only"),
    workers: int = typer.Option(DEFAULT_WORKERS, min=1, max=4, help="Concurrent geocoding requests"),
):
    """Recompute distance, duration and roads of an edited route file."""
    route = Route.model_validate_json(route_json.read_text(encoding="utf-8"))
    result = RouteRecalculator(_aggregator(no_geocode, workers, False)).recalculate(route)
    (json_out or route_json).write_text(route.model_dump_json(indent=2), encoding="utf-8")
    _print_route(route)
    _print_unresolved(result.unresolved, BatchSummary(unresolved=result.unresolved).failed_road_names)


if __name__ == "__main__":
    app()
