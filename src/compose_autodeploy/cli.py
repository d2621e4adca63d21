"""Command line interface for Compose Autodeploy."""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import ConfigManager, DeployConfig
from .errors import DeployError
from .orchestrator import DeploymentOrchestrator, RunResult
from .services.deployer import DeploymentMarker
from .services.deployment_lock import DeploymentLock
from .services.scheduler import SchedulerRegistrar
from .services.topology import TopologyGenerator
from .utils.exception_logger import ExceptionLogger
from .utils.messaging import Reporter

logger = logging.getLogger(__name__)

console = Console(soft_wrap=True)
error_console = Console(stderr=True, soft_wrap=True)


def _load_config(ctx: click.Context) -> DeployConfig:
    config_manager: ConfigManager = ctx.obj["config_manager"]
    try:
        return config_manager.load()
    except ValueError as e:
        Reporter().error(str(e))
        sys.exit(1)


def _print_summary(config: DeployConfig, result: RunResult) -> None:
    topology = config.topology
    console.print("\n\n=======================================================")
    console.print("✅ DEPLOYMENT COMPLETE!", style="green bold")
    if result.deployment is not None:
        state = "rebuilt" if result.deployment.changed else "unchanged"
        console.print(f"  📌 Commit {result.deployment.commit[:12]} ({state})")
    console.print(" ")
    console.print(f"  ➡️  Frontend: http://127.0.0.1:{topology.frontend_port}")
    console.print(f"  ➡️  Backend:  http://127.0.0.1:{topology.backend_port}")
    console.print(" ")
    console.print(f"  ℹ️   Execution logs are saved to: {config.log_file}")
    console.print("=======================================================")


def _initialize_exception_logger(config: DeployConfig) -> None:
    try:
        ExceptionLogger.initialize(config.log_file.parent)
    except OSError as e:
        # Unwritable without root; the privilege check reports that next
        logger.debug(f"Exception log unavailable: {e}")


def run_deployment(config: DeployConfig) -> None:
    """Run one deployment and exit with its status code."""
    reporter = Reporter()
    _initialize_exception_logger(config)

    try:
        result = DeploymentOrchestrator(config, reporter=reporter).run()
    except DeployError as e:
        _record_fatal(e)
        reporter.error(str(e))
        sys.exit(1)
    except OSError as e:
        _record_fatal(e)
        reporter.error(f"Filesystem error: {e}")
        sys.exit(1)

    if not result.skipped:
        _print_summary(config, result)


def _record_fatal(error: BaseException) -> None:
    exception_logger = ExceptionLogger.get_instance()
    if exception_logger:
        exception_logger.log_exception(error, context={"fatal": True})


@click.group(invoke_without_command=True)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    help=f"Config file path (default: {ConfigManager.DEFAULT_CONFIG_PATH})",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__, prog_name="compose-autodeploy")
@click.pass_context
def cli(ctx, config_path: Optional[str], verbose: bool):
    """Self-updating deployment agent for a frontend/backend compose stack.

    \b
    Run without a command (as root) to perform a full deployment:
      1. prepare the application directory and log file
      2. install Docker, the compose plugin and Yarn
      3. clone or fetch the source repository
      4. generate docker-compose.yml from the frontend/backend directories
      5. rebuild the stack if the remote branch moved, otherwise just start it
      6. register a crontab entry that repeats this every 5 minutes

    \b
    EXAMPLES:
      sudo compose-autodeploy
      sudo compose-autodeploy --config /etc/compose-autodeploy/config.json
      compose-autodeploy status
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)

    if "config_manager" not in ctx.obj:
        ctx.obj["config_manager"] = ConfigManager(
            Path(config_path) if config_path else None
        )

    if ctx.invoked_subcommand is None:
        run_deployment(_load_config(ctx))


@cli.command("status")
@click.pass_context
def status_command(ctx):
    """Show configuration, last deployed commit, lock and crontab state."""
    config = _load_config(ctx)

    table = Table(title="Compose Autodeploy Status")
    table.add_column("Item", style="cyan")
    table.add_column("Value")

    table.add_row("Repository", f"{config.repo_url} ({config.branch})")
    table.add_row("App directory", str(config.app_dir))

    marker = DeploymentMarker(config.marker_path).read()
    table.add_row("Last deployed commit", marker or "(never deployed)")

    holder = DeploymentLock(config.lock_file).get_holder_pid()
    table.add_row(
        "Deployment lock", f"held by PID {holder}" if holder else "free"
    )

    registrar = SchedulerRegistrar(
        invocation_path=config.resolve_invocation_path(),
        log_file=config.log_file,
        config=config.schedule,
    )
    try:
        scheduled = "registered" if registrar.is_registered() else "not registered"
    except Exception as e:
        scheduled = f"unknown ({e})"
    table.add_row("Crontab task", scheduled)
    table.add_row("Log file", str(config.log_file))

    console.print(table)


@cli.command("compose")
@click.pass_context
def compose_command(ctx):
    """Regenerate docker-compose.yml without deploying."""
    config = _load_config(ctx)
    reporter = Reporter()
    generator = TopologyGenerator(
        config.app_dir, config.compose_path, config=config.topology, reporter=reporter
    )
    try:
        path = generator.generate()
    except DeployError as e:
        reporter.error(str(e))
        sys.exit(1)
    console.print(f"📄 {path}")


def main():
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        error_console.print("\n❌ Interrupted by user", style="red")
        sys.exit(1)
    except Exception as e:
        error_console.print(f"❌ Unexpected error: {str(e)}", style="red", markup=False)
        sys.exit(1)


if __name__ == "__main__":
    main()
