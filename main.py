#!/usr/bin/env python3
"""
Intent Spec Compiler CLI

Compiles recorded browser sessions into reusable, parameterized automation specs.
"""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console

from config import get_config
from utils.logger import CompileLogger
from utils.tracking import CostTracker, Timer
from utils.llm import LLMClient

load_dotenv()

# Create Typer app
app = typer.Typer(
    name="intent-spec",
    help="Compile recorded browser sessions into parameterized Intent Specs",
    rich_markup_mode="rich",
)

console = Console()


def _load_recording(path: Path):
    from compiler import MalformedRecordingError
    from recorder import Recording

    if not path.exists():
        console.print(f"[red]✗[/red] Recording not found: {path}")
        raise typer.Exit(1)
    try:
        return Recording.load(path)
    except MalformedRecordingError as e:
        console.print(f"[red]✗[/red] Malformed recording: {e.message}")
        raise typer.Exit(1)


@app.command("compile")
def compile_command(
    recording: Annotated[
        Path,
        typer.Argument(help="Path to recording JSON file"),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("-o", "--output", help="Output path for the spec (.json or .yaml)"),
    ] = None,
    strategy: Annotated[
        Optional[str],
        typer.Option("-s", "--strategy", help="model | rule_based | model_with_fallback"),
    ] = None,
    model: Annotated[
        Optional[str],
        typer.Option("-m", "--model", help="Model for the analysis service"),
    ] = None,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Seconds to wait for the analysis service"),
    ] = None,
    log: Annotated[
        bool,
        typer.Option("--log/--no-log", help="Write a log file"),
    ] = True,
) -> None:
    """Compile a recording into an Intent Spec."""
    from compiler import (
        CompileOptions,
        FallbackExhaustedError,
        LLMAnalysisService,
        Strategy,
        compile_recording,
    )

    cfg = get_config()
    try:
        chosen = Strategy(strategy or cfg.strategy)
    except ValueError:
        console.print(f"[red]✗[/red] Unknown strategy: {strategy}")
        raise typer.Exit(1)

    rec = _load_recording(recording)
    analysis_model = model or cfg.models.analysis

    logger = CompileLogger("compile", logs_dir=cfg.logs_dir if log else None)
    cost_tracker = CostTracker()
    timer = Timer("Compile")

    try:
        timer.start()

        logger.header("Intent Spec Compilation")
        logger.info(f"Recording: [cyan]{recording}[/cyan] ({len(rec.actions)} actions)")
        logger.info(f"Strategy: [cyan]{chosen.value}[/cyan]")

        service = None
        if chosen != Strategy.RULE_BASED:
            if cfg.has_api_key:
                logger.info(f"Analysis model: [cyan]{analysis_model}[/cyan]")
                llm_client = LLMClient(cost_tracker, logger)
                service = LLMAnalysisService(
                    llm_client, analysis_model, max_tokens=cfg.max_tokens, logger=logger
                )
            else:
                logger.warning("No API key configured; the analysis service is unavailable")

        options = CompileOptions.from_config(cfg, strategy=chosen, service=service)
        if timeout is not None:
            options.timeout = timeout

        try:
            spec = compile_recording(rec, options, logger=logger)
        except FallbackExhaustedError as e:
            logger.error(e.message)
            raise typer.Exit(1)

        if spec.fallback_reason:
            logger.warning(f"Fell back to {spec.provenance.value}: {spec.fallback_reason}")

        output_path = output or cfg.specs_dir / f"{recording.stem}.json"
        spec.save(output_path)
        logger.success(f"Spec saved: [cyan]{output_path}[/cyan]")

        timer.stop()

        logger.header("Compilation Summary")

        if spec.params:
            logger.table(
                "Params",
                ["Name", "Description", "Default"],
                [[p.name, p.description, p.default if p.default is not None else "-"] for p in spec.params],
            )
            logger.print()

        if cost_tracker.model_stats:
            logger.table(
                "Cost by Model",
                ["Model", "Calls", "Input Tokens", "Output Tokens", "Cost"],
                cost_tracker.get_model_summary(),
            )
            logger.print()

        summary_data = {
            "Spec": spec.name,
            "Provenance": spec.provenance.value,
            "Steps": str(len(spec.steps)),
            "Params": str(len(spec.params)),
            "Duration": timer.elapsed_str,
            **cost_tracker.get_summary(),
            "Log File": str(logger.log_file) if logger.log_file else "-",
        }
        logger.summary("Compile Complete", summary_data)

    finally:
        logger.close()


@app.command("reduce")
def reduce_command(
    recording: Annotated[
        Path,
        typer.Argument(help="Path to recording JSON file"),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("-o", "--output", help="Write the reduced recording to this file"),
    ] = None,
    classify_fields: Annotated[
        bool,
        typer.Option("--classify/--no-classify", help="Also show field classifications"),
    ] = True,
) -> None:
    """Reduce a recording and report what was kept."""
    from compiler import classify, reduce

    cfg = get_config()
    rec = _load_recording(recording)
    logger = CompileLogger("reduce", logs_dir=None)

    reduced = reduce(rec, budget=cfg.reduction_budget, logger=logger)

    report = reduced.report()
    logger.summary(
        "Reduction",
        {
            "Actions": f"{report['kept_actions']} of {report['total_actions']} kept",
            "Size": f"{report['original_bytes']:,} -> {report['reduced_bytes']:,} bytes",
            "Ratio": f"{report['ratio'] * 100:.1f}%",
            "Overflow": "[red]yes[/red]" if report["overflow"] else "no",
            "API Patterns": ", ".join(reduced.api_patterns) or "-",
        },
        style="red" if reduced.overflow else "green",
    )

    if classify_fields:
        classification = classify(reduced)
        if classification.fields:
            logger.table(
                "Fields",
                ["Field", "Class", "Param", "Source"],
                [
                    [f.field_key, f.field_class.value, f.param_name, f.value_source]
                    for f in classification.fields
                ],
            )
        workflow = classification.workflow.name if classification.workflow else "none"
        logger.info(f"Workflow: [bold]{workflow}[/bold]")

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "w", encoding="utf-8") as f:
            json.dump(reduced.to_dict(), f, indent=2, ensure_ascii=False)
        logger.success(f"Reduced recording saved: [cyan]{output}[/cyan]")


@app.command("list")
def list_specs(
    directory: Annotated[
        Optional[Path],
        typer.Option("-d", "--dir", help="Specs directory"),
    ] = None,
) -> None:
    """List compiled Intent Specs."""
    from compiler import IntentSpec

    specs_dir = Path(directory or get_config().specs_dir)

    if not specs_dir.exists():
        console.print("[yellow]No specs directory found.[/yellow]")
        return

    spec_files = sorted(
        [*specs_dir.glob("*.json"), *specs_dir.glob("*.yaml"), *specs_dir.glob("*.yml")],
        key=lambda p: p.stem,
    )
    if not spec_files:
        console.print("[yellow]No specs found.[/yellow]")
        return

    console.print(f"\n[bold]Specs in {specs_dir}:[/bold]\n")

    for path in spec_files:
        try:
            spec = IntentSpec.load(path)
        except (OSError, ValueError) as e:
            console.print(f"  [red]✗ {path.name}[/red]: Error loading - {e}")
            continue
        console.print(f"  [cyan]📄 {path.name}[/cyan]")
        console.print(f"     Name: [bold]{spec.name}[/bold]")
        desc = spec.description[:60] + "..." if len(spec.description) > 60 else spec.description
        console.print(f"     Description: {desc}")
        params = ", ".join(spec.param_names) or "none"
        console.print(f"     Params: [dim]{params}[/dim]")
        console.print()


@app.command()
def show(
    spec_path: Annotated[
        Path,
        typer.Argument(help="Path to spec file"),
    ],
) -> None:
    """Show details of an Intent Spec."""
    from rich.syntax import Syntax
    from compiler import IntentSpec

    if not spec_path.exists():
        console.print(f"[red]✗[/red] Spec not found: {spec_path}")
        raise typer.Exit(1)

    spec = IntentSpec.load(spec_path)

    console.print(f"\n[bold blue]# {spec.name}[/bold blue]")
    console.print(f"\n[dim]Description:[/dim] {spec.description}")
    console.print(f"[dim]URL:[/dim] {spec.url}")
    console.print(f"[dim]Provenance:[/dim] {spec.provenance.value}")

    if spec.params:
        console.print(f"\n[bold]## Params ({len(spec.params)})[/bold]")
        for param in spec.params:
            console.print(f"\n  [cyan]{param.name}[/cyan]")
            if param.description:
                console.print(f"    Description: {param.description}")
            if param.default is not None:
                console.print(f"    Default: [green]{param.default}[/green]")

    console.print(f"\n[bold]## Steps ({len(spec.steps)})[/bold]\n")
    for i, step in enumerate(spec.steps, 1):
        console.print(f"  {i}. [bold]{step.name}[/bold] [dim]({step.action})[/dim]")
        console.print(f"     {step.instruction}")
        if step.snippet:
            console.print(Syntax(step.snippet, "javascript", theme="ansi_dark"), style="dim")


def main() -> None:
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
