"""
installpilot - vision-guided desktop automation and application installer.
Main entry point for the application.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel

from installpilot import __version__
from installpilot.agents.control_loop import ControlLoop, build_control_loop
from installpilot.config.settings import get_settings
from installpilot.core.types import AppDescriptor
from installpilot.error_handling import InstallPilotError, SessionError
from installpilot.lifecycle import AppLifecycleManager, LocalArtifactSource, SystemPlatform
from installpilot.monitoring.logger import get_logger, setup_logging
from installpilot.tools import DesktopControlTool

console = Console()
logger = get_logger("main")


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="installpilot",
        description=f"installpilot - vision-guided desktop automation v{__version__}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Install an application from a downloaded disk image, then launch it
  installpilot install com.example.App --artifact ~/Downloads/App.dmg --launch

  # Drive the desktop toward a goal
  installpilot control "Open the Settings window"

  # Only look at the screen and print the next suggested action
  installpilot control "Close the dialog" --capture-only
        """,
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version information",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable structured logging output (JSON)",
    )

    subparsers = parser.add_subparsers(dest="command")

    install = subparsers.add_parser("install", help="Install an application if it is missing")
    install.add_argument("bundle_id", help="Bundle identifier or desktop entry id")
    install.add_argument(
        "--artifact",
        type=Path,
        required=True,
        help="Path to the downloaded installer image",
    )
    install.add_argument("--name", help="Human-readable application name")
    install.add_argument(
        "--launch",
        action="store_true",
        help="Launch the application once it is installed",
    )
    install.add_argument(
        "--max-attempts",
        type=int,
        help="Attempt ceiling for the guided install (default: from settings)",
    )

    control = subparsers.add_parser("control", help="Drive the desktop toward a goal")
    control.add_argument("instruction", help="Natural-language goal")
    control.add_argument(
        "--capture-only",
        action="store_true",
        help="Capture and decide once without acting",
    )
    control.add_argument(
        "--max-attempts",
        type=int,
        help="Attempt ceiling for the session (default: from settings)",
    )

    return parser


def show_version() -> int:
    """Show version information."""
    console.print("\n[bold cyan]installpilot - vision-guided desktop automation[/bold cyan]")
    console.print(f"Version: [green]{__version__}[/green]")
    console.print("Python: [dim]3.10+[/dim]")
    return 0


async def run_install(
    control_loop: ControlLoop,
    descriptor: AppDescriptor,
    artifact: Path,
    launch: bool,
) -> int:
    """Ensure an application is installed and optionally launch it."""
    settings = get_settings()
    manager = AppLifecycleManager.from_settings(
        settings,
        platform=SystemPlatform(command_timeout=settings.mount_timeout_seconds),
        control_loop=control_loop,
    )

    result = await manager.ensure_installed(descriptor, LocalArtifactSource(artifact))
    if result is None:
        console.print(f"[green]{descriptor.display_name} is already installed[/green]")
    else:
        console.print(
            Panel(
                f"Installed [bold]{descriptor.display_name}[/bold] "
                f"in {result.attempts} attempt(s)",
                title="Installation completed",
                border_style="green",
            )
        )

    if launch:
        await manager.launch(descriptor)
        console.print(f"[cyan]Launched {descriptor.display_name}[/cyan]")
    return 0


async def run_control(control_loop: ControlLoop, instruction: str, capture_only: bool) -> int:
    """Run the desktop control tool once from the command line."""
    tool = DesktopControlTool(control_loop)
    response = await tool.run(instruction, capture_only=capture_only)
    console.print_json(json.dumps(response))
    if capture_only:
        return 0
    return 0 if response["outcome"] == "completed" else 1


async def async_main(args: Optional[list[str]] = None) -> int:
    """Async main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if parsed_args.version:
        return show_version()

    if parsed_args.command is None:
        parser.print_help()
        return 1

    settings = get_settings()

    if parsed_args.debug:
        settings.log_level = "DEBUG"
    if parsed_args.verbose:
        settings.log_format = "json"
    if parsed_args.max_attempts is not None:
        settings.loop_max_attempts = parsed_args.max_attempts

    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        sanitize_logs=settings.sanitize_logs,
    )

    control_loop = build_control_loop(settings)
    driver = control_loop.driver
    try:
        await driver.start()
        if parsed_args.command == "install":
            descriptor = AppDescriptor(bundle_id=parsed_args.bundle_id, name=parsed_args.name)
            return await run_install(
                control_loop,
                descriptor,
                artifact=parsed_args.artifact,
                launch=parsed_args.launch,
            )
        return await run_control(
            control_loop, parsed_args.instruction, parsed_args.capture_only
        )
    except SessionError as e:
        console.print(f"\n[red]Installation ended {e.outcome}: {e.reasoning}[/red]")
        return 1
    except InstallPilotError as e:
        console.print(f"\n[red]Error: {e.message}[/red]")
        logger.error("Command failed", extra={"error": e.to_dict()})
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130
    finally:
        await driver.stop()


def main(args: Optional[list[str]] = None) -> int:
    """
    Main entry point for installpilot.

    Args:
        args: Command line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        return asyncio.run(async_main(args))
    except Exception as e:
        console.print(f"[red]Fatal error: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
