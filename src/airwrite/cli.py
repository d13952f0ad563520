"""airwrite CLI: offline tooling for the recognition engine.

Usage:
    airwrite classify stroke.json    rank letters for a recorded stroke
    airwrite replay stroke.json      run a stroke through the live engine
    airwrite templates               list the template library
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from airwrite.config import EngineConfig
from airwrite.engine import RecognitionEngine
from airwrite.heuristics import HeuristicClassifier
from airwrite.matcher import TemplateMatcher
from airwrite.scheduling import ManualScheduler
from airwrite.stroke import load_stroke
from airwrite.templates import TemplateLibrary, default_library
from airwrite.types import ClassificationResult

app = typer.Typer(
    name="airwrite",
    help="Air-writing letter recognition tools.",
    add_completion=False,
)


def _setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_library(templates: Optional[Path]) -> TemplateLibrary:
    return TemplateLibrary.load(templates) if templates else default_library()


def _load_neural(model: Optional[Path]):
    if model is None:
        return None
    from airwrite.neural import TorchLetterClassifier

    return TorchLetterClassifier.load(model)


def _format(result: ClassificationResult) -> str:
    alts = ", ".join(f"{c.label} {c.confidence:.2f}" for c in result.alternatives)
    flag = " (degraded)" if result.degraded else ""
    return f"{result.label} {result.confidence:.2f}{flag}  [{alts}]"


@app.command()
def classify(
    stroke: Path = typer.Argument(..., exists=True, help="Stroke JSON file"),
    templates: Optional[Path] = typer.Option(None, help="Template library (YAML/JSON)"),
    model: Optional[Path] = typer.Option(None, help="TorchScript letter model"),
    top: int = typer.Option(5, help="Candidates to show per classifier"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Rank letters for a single recorded stroke."""
    _setup_logging(log_level)
    points = load_stroke(stroke)
    library = _load_library(templates)

    template_ranked = TemplateMatcher(library).classify(points)[:top]
    heuristic_ranked = HeuristicClassifier().classify(points)[:top]
    engine = RecognitionEngine(
        library=library,
        neural=_load_neural(model),
        scheduler=ManualScheduler(),
    )
    blended = engine.recognize(points)

    if as_json:
        typer.echo(json.dumps({
            "points": len(points),
            "template": [{"letter": c.label, "confidence": round(c.confidence, 4)} for c in template_ranked],
            "heuristic": [{"letter": c.label, "confidence": round(c.confidence, 4)} for c in heuristic_ranked],
            "result": blended.to_dict(),
        }, indent=2))
        return

    typer.echo(f"{len(points)} points")
    typer.echo("template:  " + ", ".join(f"{c.label} {c.confidence:.2f}" for c in template_ranked))
    typer.echo("heuristic: " + ", ".join(f"{c.label} {c.confidence:.2f}" for c in heuristic_ranked))
    typer.echo("result:    " + _format(blended))


@app.command()
def replay(
    stroke: Path = typer.Argument(..., exists=True, help="Stroke JSON file with timestamps"),
    config: Optional[Path] = typer.Option(None, help="Engine config YAML"),
    model: Optional[Path] = typer.Option(None, help="TorchScript letter model"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Feed a timestamped stroke through the engine and print every result."""
    _setup_logging(log_level)
    points = load_stroke(stroke)
    if not points:
        typer.echo("Stroke is empty", err=True)
        raise typer.Exit(1)

    cfg = EngineConfig.from_yaml(config) if config else EngineConfig()
    scheduler = ManualScheduler(start_ms=points[0].timestamp_ms)
    engine = RecognitionEngine(config=cfg, neural=_load_neural(model), scheduler=scheduler)

    def show(result: ClassificationResult):
        t = scheduler.now_ms() - points[0].timestamp_ms
        typer.echo(f"{t:>7}ms {result.mode.value:<5} {_format(result)}")

    engine.on_result(show)
    engine.start()
    for p in points:
        scheduler.advance(max(0, p.timestamp_ms - scheduler.now_ms()))
        engine.submit_points([p])

    # Let the stroke go idle long enough to finalize.
    scheduler.advance(cfg.pause_threshold_ms + 3 * cfg.tick_interval_ms)
    engine.close()

    final = engine.current_result()
    if engine.stats["final_results"] == 0:
        typer.echo("No final result (stroke too short?)", err=True)
        raise typer.Exit(1)
    typer.echo(f"final: {final.label}")


@app.command()
def templates(
    path: Optional[Path] = typer.Option(None, "--templates", help="Template library (YAML/JSON)"),
):
    """List labels and variants in the template library."""
    library = _load_library(path)
    typer.echo(f"Template library v{library.version}: {len(library)} templates")
    for label in library.labels:
        variants = [t.variant or "-" for t in library.variants(label)]
        typer.echo(f"  {label}: {', '.join(variants)}")


def main():
    app()


if __name__ == "__main__":
    main()
