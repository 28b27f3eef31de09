"""CLI entry points for agentflow."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any, List, Optional

import typer
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from agentflow._version import __version__

app = typer.Typer(
    name="agentflow",
    help="agentflow — dependency-driven workflow orchestration for agents.",
    no_args_is_help=True,
)
console = Console()

_STATE_STYLES = {
    "succeeded": "green",
    "skipped": "yellow",
    "failed": "red",
    "pending": "dim",
    "ready": "dim",
    "running": "cyan",
}


def _parse_inputs(pairs: list[str], inputs_file: str | None) -> dict[str, Any]:
    from agentflow.config.loader import ConfigError, parse_document

    inputs: dict[str, Any] = {}
    if inputs_file:
        path = Path(inputs_file)
        if not path.exists():
            raise typer.BadParameter(f"Inputs file '{path}' not found", param_hint="--inputs")
        try:
            data = parse_document(path.read_text(encoding="utf-8"), str(path), ConfigError)
        except ConfigError as e:
            raise typer.BadParameter(str(e), param_hint="--inputs")
        if not isinstance(data, dict):
            raise typer.BadParameter("Inputs file must contain a mapping", param_hint="--inputs")
        inputs.update(data)

    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got '{pair}'", param_hint="--input")
        # YAML scalars give numbers, booleans and lists their natural types
        try:
            inputs[key] = yaml.safe_load(raw) if raw else ""
        except yaml.YAMLError:
            inputs[key] = raw
    return inputs


def _load_definition(path: str):
    from agentflow.core.definition import WorkflowDefinition
    from agentflow.core.errors import DefinitionError
    from agentflow.core.graph import DependencyGraph

    try:
        definition = WorkflowDefinition.from_file(path)
        graph = DependencyGraph.build(definition)
    except DefinitionError as e:
        console.print(f"[red]❌ Invalid workflow:[/red]\n{e}")
        raise typer.Exit(code=1)
    return definition, graph


def _start_dashboard(monitor: Any, event_bus: Any, host: str, port: int):
    """Start the dashboard server in a background thread."""

    def _run_server():
        import uvicorn

        from agentflow.dashboard.app import create_dashboard_app

        dashboard_app = create_dashboard_app(monitor=monitor, event_bus=event_bus)
        uvicorn.run(dashboard_app, host=host, port=port, log_level="warning")

    thread = threading.Thread(target=_run_server, daemon=True)
    thread.start()
    time.sleep(0.5)


@app.command()
def run(
    workflow: str = typer.Argument(..., help="Workflow definition (.yaml, .yml or .json)"),
    agents: str = typer.Option(..., "--agents", "-a", help="Agent registry as 'module.path:attribute'"),
    inputs: Optional[List[str]] = typer.Option(None, "--input", "-i", help="Initial input as key=value"),
    inputs_file: Optional[str] = typer.Option(None, "--inputs", help="YAML/JSON file with initial inputs"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Overall budget in seconds"),
    settings_path: Optional[str] = typer.Option(None, "--settings", "-s", help="Engine settings YAML"),
    trace_out: Optional[str] = typer.Option(None, "--trace-out", help="Write the trace to this JSON file"),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    dashboard: bool = typer.Option(False, "--dashboard", help="Serve the monitoring API during the run"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Dashboard port"),
):
    """Execute a workflow definition."""
    from agentflow.agents.registry import load_agents
    from agentflow.config.loader import ConfigError, ConfigLoader
    from agentflow.core.engine import WorkflowEngine
    from agentflow.observe.export import export_trace_json
    from agentflow.observe.logging import configure_logging
    from agentflow.observe.tracer import EventType, TraceEvent

    definition, graph = _load_definition(workflow)

    try:
        settings = ConfigLoader.load(settings_path) if settings_path else ConfigLoader.validate({})
    except ConfigError as e:
        console.print(f"[red]Configuration Error:[/red] {e}")
        raise typer.Exit(code=1)
    configure_logging(settings["observe"]["log_level"], settings["observe"]["log_format"])

    try:
        registry = load_agents(agents)
    except (ImportError, ValueError) as e:
        console.print(f"[red]Error loading agents:[/red] {e}")
        raise typer.Exit(code=1)

    initial = _parse_inputs(inputs or [], inputs_file)
    engine = WorkflowEngine(registry, settings=settings)

    console.print(f"\n[bold]⚡ agentflow[/bold] v{__version__}")
    console.print(
        f"[dim]Workflow:[/dim] {definition.name} v{definition.version} "
        f"[dim]|[/dim] [dim]Steps:[/dim] {len(definition.steps)} "
        f"[dim]|[/dim] [dim]Waves:[/dim] {len(graph.waves())}"
    )

    if dashboard:
        dash = settings["dashboard"]
        dash_port = port or dash["port"]
        _start_dashboard(engine.monitor, engine.event_bus, dash["host"], dash_port)
        console.print(f"[blue]📊 Monitor: http://{dash['host']}:{dash_port}[/blue]")
    console.print()

    def on_event(event: TraceEvent):
        if event.event_type == EventType.STEP_START:
            console.print(
                f"  [bold]▸[/bold] [cyan]{event.step_id}[/cyan] "
                f"[dim]({event.agent_name}, wave {event.data.get('wave')})[/dim]"
            )
        elif event.event_type in (EventType.STEP_END, EventType.STEP_SKIPPED):
            state = event.data.get("state", "")
            style = _STATE_STYLES.get(state, "white")
            detail = f" — {event.data['error']}" if event.data.get("error") else ""
            console.print(
                f"    [{style}]{state}[/{style}] {event.step_id} "
                f"[dim]{event.duration_ms:.0f}ms[/dim]{detail}"
            )
        elif event.event_type == EventType.RETRY:
            console.print(f"    [yellow]↻ retry[/yellow] {event.step_id}")

    engine.event_bus.subscribe_sync(on_event)
    engine.tracer.start()
    result = engine.run(definition, initial, timeout=timeout)

    if trace_out:
        export_trace_json(engine.tracer, trace_out, run_id=result.run_id)
        console.print(f"[dim]Trace written to {trace_out}[/dim]")

    if json_output:
        console.print_json(result.to_json())
    else:
        _print_result(result)

    if not result.success:
        raise typer.Exit(code=1)


def _print_result(result: Any):
    table = Table(title="Step Results", show_header=True, header_style="bold cyan")
    table.add_column("Step", style="white")
    table.add_column("Agent", style="dim")
    table.add_column("State")
    table.add_column("Attempts", justify="right", style="yellow")
    table.add_column("Duration", justify="right", style="green")
    table.add_column("Outputs / Error")

    for outcome in result.step_results.values():
        style = _STATE_STYLES.get(outcome.state.value, "white")
        detail = outcome.error or ", ".join(sorted(outcome.outputs))
        table.add_row(
            outcome.step_id,
            outcome.agent_name,
            f"[{style}]{outcome.state.value}[/{style}]",
            str(outcome.attempts),
            f"{outcome.duration * 1000:.0f}ms",
            detail or "—",
        )
    console.print(table)

    body = "\n".join(f"{k} = {v!r}" for k, v in sorted(result.outputs.items())) or "(empty)"
    console.print(
        Panel(
            body,
            title="[bold]Data Bag[/bold]",
            border_style="green" if result.success else "red",
            expand=True,
        )
    )
    console.print(
        f"\n[dim]⏱️  {result.status.value} in {result.execution_time_ms:.0f}ms, "
        f"{result.steps_executed} step(s) executed[/dim]"
    )
    if result.error is not None:
        console.print(f"\n[red]{type(result.error).__name__}:[/red] {result.error}")
    elif result.errors:
        console.print("\n[red]Workflow completed with step failures[/red]")


@app.command()
def validate(
    workflow: str = typer.Argument(..., help="Workflow definition (.yaml, .yml or .json)"),
):
    """Validate a workflow definition without executing it."""
    definition, graph = _load_definition(workflow)

    console.print(f"[green]✅ {workflow} is valid![/green]")
    console.print(f"  Workflow: {definition.name} v{definition.version}")
    console.print(f"  Steps: {len(definition.steps)}")
    console.print(f"  Agents: {', '.join(sorted({s.agent for s in definition.steps}))}")
    console.print(f"  Roots: {', '.join(graph.roots())}")
    if definition.timeout:
        console.print(f"  Timeout: {definition.timeout}s")


@app.command()
def graph(
    workflow: str = typer.Argument(..., help="Workflow definition (.yaml, .yml or .json)"),
):
    """Show the readiness waves a fully successful run would dispatch."""
    definition, dep_graph = _load_definition(workflow)

    table = Table(title=f"{definition.name} — readiness waves", show_header=True, header_style="bold cyan")
    table.add_column("Wave", justify="right", style="yellow")
    table.add_column("Step", style="white")
    table.add_column("Agent", style="dim")
    table.add_column("Depends on", style="dim")
    table.add_column("Parallel", justify="center")
    table.add_column("Condition", style="magenta")

    for i, wave in enumerate(dep_graph.waves(), start=1):
        for sid in wave:
            step = definition.get_step(sid)
            table.add_row(
                str(i),
                sid,
                step.agent,
                ", ".join(sorted(step.depends_on)) or "—",
                "✓" if step.parallel else "",
                step.condition or "",
            )
        table.add_section()
    console.print(table)


@app.command(name="dashboard")
def dashboard_cmd(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8420, "--port", "-p"),
):
    """Start the monitoring API standalone."""
    import uvicorn

    from agentflow.dashboard.app import create_dashboard_app
    from agentflow.observe.events import EventBus
    from agentflow.observe.monitor import ExecutionMonitor

    console.print(f"[bold]⚡ agentflow monitor[/bold] — http://{host}:{port}")

    dashboard_app = create_dashboard_app(monitor=ExecutionMonitor(), event_bus=EventBus())
    uvicorn.run(dashboard_app, host=host, port=port, log_level="info")


@app.command()
def version():
    """Show agentflow version."""
    console.print(f"⚡ agentflow v{__version__}")


if __name__ == "__main__":
    app()
