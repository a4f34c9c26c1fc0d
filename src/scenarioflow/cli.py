from pathlib import Path
import typer
from rich import print as rprint
from rich.panel import Panel
from rich.table import Table
from typing import Optional

from .builtins import create_block_registry, create_component_registry
from .config import configure_logging, load_config
from .generator import TEMPLATES, generate_scenario_from_template, save_scenario_yaml
from .validator import validate_scenario_from_file
from .visualize import ascii_plan

app = typer.Typer(no_args_is_help=True, help="scenarioflow CLI — run block and component scenarios")


@app.command()
def init():
    """Create a local project layout (scenarios/, results/)."""
    for name in ["scenarios", "results"]:
        Path(name).mkdir(exist_ok=True)
    rprint(Panel.fit("[bold green]Initialized[/] directories: scenarios/, results/"))


@app.command()
def generate(template: str = typer.Option(..., help=f"Template to use: {' | '.join(TEMPLATES)}"),
             name: str = typer.Option("scenario", help="Output filename (without .yaml)"),
             outdir: Path = typer.Option(Path("scenarios"), help="Where to place the YAML"),
    ):
    """Generate a scenario YAML from a bundled template."""
    try:
        doc = generate_scenario_from_template(template)
    except ValueError as e:
        rprint(f"[red]{e}[/]")
        raise typer.Exit(code=1)
    outdir.mkdir(exist_ok=True, parents=True)
    outfile = outdir / f"{name}.yaml"
    save_scenario_yaml(doc, outfile)
    rprint(Panel.fit(f"Saved template [bold]{template}[/] to [cyan]{outfile}[/]"))


@app.command()
def validate(file: Path):
    """Validate a scenario YAML (ids, node types, connections, loops)."""
    ok, messages = validate_scenario_from_file(file, create_block_registry(), create_component_registry())
    table = Table(title="Validation Report", show_lines=True)
    table.add_column("Status", justify="center", style="bold")
    table.add_column("Message")
    for m in messages:
        status = m.split(":", 1)[0]
        table.add_row(status, m)
    rprint(table)
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def explain(file: Path):
    """Print an ASCII plan of the scenario graph."""
    print(ascii_plan(file, create_block_registry()))


@app.command()
def catalog():
    """List the available block and component types."""
    for label, registry in (("Blocks", create_block_registry()), ("Components", create_component_registry())):
        table = Table(title=label, show_lines=True)
        table.add_column("Type", style="bold")
        table.add_column("Title")
        table.add_column("Inputs")
        table.add_column("Outputs")
        table.add_column("Fields", justify="right")
        for entry in registry.get_all():
            table.add_row(
                entry["name"],
                entry["title"],
                ", ".join(i["name"] for i in entry["inputs"]),
                ", ".join(o["name"] for o in entry["outputs"]),
                str(entry["field_count"]),
            )
        rprint(table)


@app.command()
def run(file: Path,
        results: Optional[Path] = typer.Option(None, help="YAML file with results of earlier runs; updated afterwards. Defaults to <results_dir>/<name>.yaml."),
        scope: Optional[str] = typer.Option(None, help="Result scope name."),
        config: Optional[Path] = typer.Option(None, help="Engine configuration YAML."),
        timeout: Optional[float] = typer.Option(None, help="Seconds to wait for the run to settle."),
        halt_on_error: Optional[bool] = typer.Option(None, "--halt-on-error/--keep-going",
                                                     help="Stop starting new blocks after an error."),
        log_level: Optional[str] = typer.Option(None, help="Log level (DEBUG, INFO, WARNING, ...).")):
    """Execute the scenario and persist its results."""
    from .runner import run_scenario
    engine_config = load_config(config).merged(
        scope_name=scope,
        run_timeout=timeout,
        halt_on_error=halt_on_error,
        log_level=log_level,
    )
    configure_logging(engine_config.log_level)
    if results is None:
        results = engine_config.results_dir / f"{file.stem}.yaml"
    ok = run_scenario(file, results=results, config=engine_config)
    if not ok:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
