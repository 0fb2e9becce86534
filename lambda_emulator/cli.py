"""
This file is the entry point for the 'apphost-aws' command-line tool.
Run 'apphost-aws' in your shell to use the CLI.
"""
import asyncio
import json
import logging
from pathlib import Path

import typer

from common.app_setup import print_and_log, print_error, setup_logging
from lambda_emulator.install_manager import should_install as should_install_policy
from lambda_emulator.lifecycle import LambdaLifecycleHook
from orchestrator.cloudformation import manifest_json
from orchestrator.graph import ResourceGraph
from orchestrator.models import CloudFormationStackResource, LambdaToolingSettings

app = typer.Typer(add_completion=False, help="AWS resources for the local application host.")


def _load_graph(app_model: Path) -> ResourceGraph:
    try:
        return ResourceGraph.load(app_model)
    except (OSError, ValueError) as e:
        print_error(f"Failed to load application model '{app_model}': {e}")
        raise typer.Exit(1)


@app.command()
def before_start(
    app_model: Path = typer.Argument(..., help="YAML or JSON file declaring the application resources"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug messages"),
    logfile: str = typer.Option(None, help="Log file (default ~/.apphost-aws/log.txt)"),
):
    """Run the Lambda emulator startup hook once against APP_MODEL."""
    logger = setup_logging(app_name="apphost-aws", loglevel=logging.DEBUG if verbose else logging.INFO, logfile=logfile)
    graph = _load_graph(app_model)
    hook = LambdaLifecycleHook(settings=LambdaToolingSettings.from_env(), logger=logger)
    report = asyncio.run(hook.before_start(graph))
    if not report.emulator_found:
        print_and_log("No Lambda emulator resource declared, nothing to do.")
        return
    print_and_log(f"Lambda test tool: {report.install_outcome.value if report.install_outcome else 'unknown'}")
    for name, exit_code in report.built_projects.items():
        print_and_log(f"Built {name} (exit code {exit_code})")
    for name, outcome in report.launch_settings.items():
        print_and_log(f"Launch settings of {name}: {outcome.value}")
    for name in report.skipped_projects:
        print_error(f"Skipped {name}, see the log for details")
    if report.halted:
        print_error("Lambda test tool location unknown, class library projects were not configured")
        raise typer.Exit(1)


@app.command()
def should_install(
    installed: str = typer.Argument(..., help="Installed version, empty string when not installed"),
    expected: str = typer.Argument(..., help="Minimum expected version"),
    allow_downgrade: bool = typer.Option(False, "--allow-downgrade", help="Reinstall when versions differ"),
):
    """Print whether the Lambda test tool would be (re)installed."""
    try:
        result = should_install_policy(installed, expected, allow_downgrade)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(2)
    print(json.dumps(result))


@app.command()
def manifest(
    app_model: Path = typer.Argument(..., help="YAML or JSON file declaring the application resources"),
    resource: str = typer.Argument(..., help="Name of a CloudFormation stack or template resource"),
):
    """Print the manifest entry of a CloudFormation resource."""
    graph = _load_graph(app_model)
    found = graph.get(resource)
    if not isinstance(found, CloudFormationStackResource):
        print_error(f"'{resource}' is not a CloudFormation resource of {app_model}")
        raise typer.Exit(1)
    print(manifest_json(found))


if __name__ == "__main__":
    app()
