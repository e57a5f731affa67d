#!/usr/bin/env python3

import argparse
import logging
import os
import sys
from argparse import Namespace
from textwrap import dedent
from typing import override

from rich.console import Console

from archsetup import __version__
from archsetup.context import InstallerContext
from archsetup.handoff import load_handoff
from archsetup.logs import DEFAULT_LOG_PATH, configure_logging
from archsetup.profiles import InstallationProfile, ProfileLoader
from archsetup.registry import get_embedded_profile, list_profiles
from archsetup.steps import get_install_steps
from archsetup.tui import TUI
from archsetup.types import ContextConfig, DefaultsConfig, Phase
from archsetup.utils import format_step_name, load_defaults
from archsetup.validations import validate_cli_arguments

console = Console()
logger = logging.getLogger("archsetup")


class IndentedHelpFormatter(argparse.RawDescriptionHelpFormatter):
  def __init__(self, prog: str, **kwargs) -> None:
    super().__init__(prog, max_help_position=30, width=80, **kwargs)

  @override
  def _format_action_invocation(self, action: argparse.Action) -> str:
    options = action.option_strings
    if not options:
      return super()._format_action_invocation(action)

    parts: list[str] = []
    if len(options) == 1:
      parts.append(f"{'':4}{options[0]}")

    else:
      parts.append(f"{', '.join(options)}")

    if action.nargs != 0:
      default_metavar = self._get_default_metavar_for_optional(action)
      parts[-1] += f" {self._format_args(action, default_metavar)}"

    return parts[-1]


def _check_system_requirements(phase: Phase) -> None:
  """Check if the system meets installation requirements."""
  if os.geteuid() != 0:
    console.print("\n[prompt.invalid]Root privileges are required. Please re-run the script as root.[/]")
    sys.exit(2)

  # Inside the chroot /mnt belongs to the new system and is not checked
  if phase is not Phase.PRE_CHROOT:
    return

  try:
    with open("/proc/mounts", "r") as f:
      if any(line.split()[1].startswith("/mnt") for line in f if line.strip() and len(line.split()) > 1):
        console.print("\n[prompt.invalid]/mnt is currently mounted or has mounted subdirectories.[/]")
        console.print("Please unmount before running the installer.")
        sys.exit(2)
  except OSError:
    pass


def _create_argument_parser(defaults: DefaultsConfig) -> argparse.ArgumentParser:
  """Create and configure the argument parser."""
  parser = argparse.ArgumentParser(
    formatter_class=IndentedHelpFormatter,
    description=dedent("""
      Per-machine Arch Linux installer.

      The pre-chroot phase runs from the live ISO: it partitions the disk
      (fresh, or next to Windows on the first half), sets up LVM on LUKS,
      bootstraps the base system and copies itself into /mnt. The
      post-chroot phase runs inside arch-chroot and configures locale,
      bootloader, desktop, services, user and drivers.
    """),
    epilog=dedent("""
      Examples:
        %(prog)s pre-chroot -p pc --dry            # Preview the pre-chroot phase
        %(prog)s pre-chroot -p nb-ws-mss           # Install next to Windows
        %(prog)s post-chroot                       # Continue inside arch-chroot
        %(prog)s --list-profiles                   # Show embedded profiles
    """),
  )

  _ = parser.add_argument(
    "phase",
    metavar="PHASE",
    nargs="?",
    choices=[phase.value for phase in Phase],
    help="installation phase to run: pre-chroot or post-chroot",
  )

  _ = parser.add_argument(
    "-d",
    "--dry",
    action="store_true",
    help="preview installation steps without executing commands or writing files",
    dest="dry",
  )

  _ = parser.add_argument(
    "-p",
    "--profile",
    metavar="PROFILE",
    type=str,
    help="machine profile by name, file path, or HTTP URL",
    dest="profile",
  )

  _ = parser.add_argument(
    "--disk",
    metavar="DEVICE",
    type=str,
    help="target disk, skips the interactive disk selection",
    dest="disk",
  )

  _ = parser.add_argument(
    "-t",
    "--timezone",
    metavar="TIMEZONE",
    type=str,
    default=None,
    help=f"system timezone in Region/City format [default: {defaults['timezone']}]",
    dest="timezone",
  )

  _ = parser.add_argument(
    "-k",
    "--keymap",
    metavar="KEYMAP",
    type=str,
    default=None,
    help=f"console keyboard layout [default: {defaults['keymap']}]",
    dest="keymap",
  )

  _ = parser.add_argument(
    "--locale",
    metavar="LOCALE",
    type=str,
    default=None,
    help=f"system locale [default: {defaults['locale']}]",
    dest="locale",
  )

  _ = parser.add_argument(
    "--hostname",
    metavar="HOSTNAME",
    type=str,
    help="system hostname [default: from profile]",
    dest="hostname",
  )

  _ = parser.add_argument(
    "--handoff-dir",
    metavar="DIR",
    type=str,
    help="directory holding target_disk.txt and friends in the post-chroot phase [default: /]",
    dest="handoff_dir",
  )

  _ = parser.add_argument(
    "--log-file",
    metavar="PATH",
    type=str,
    default=DEFAULT_LOG_PATH,
    help="write the detailed log here [default: %(default)s]",
    dest="log_file",
  )

  _ = parser.add_argument(
    "-v",
    "--verbose",
    action="store_true",
    help="also show debug log messages on the terminal",
    dest="verbose",
  )

  _ = parser.add_argument(
    "--list-profiles",
    action="store_true",
    help="list embedded machine profiles and exit",
    dest="list_profiles",
  )

  _ = parser.add_argument("--version", action="version", version=f"archsetup {__version__}")

  return parser


def _print_profiles() -> None:
  console.print("Embedded profiles:")
  for name in list_profiles():
    data = get_embedded_profile(name) or {}
    console.print(f" • [bold]{name}[/] - {data.get('description', '')}")


def _resolve_profile_source(args: Namespace) -> str | None:
  """CLI flag first, then the profile recorded by the pre-chroot phase."""
  if args.profile:
    return args.profile

  if args.phase == Phase.POST_CHROOT.value:
    recorded = load_handoff(args.handoff_dir or "/").profile
    if recorded:
      console.print(f"Using profile recorded by the pre-chroot phase: {recorded}")
      return recorded

  return None


def _create_context_config(args: Namespace, profile: InstallationProfile, defaults: DefaultsConfig) -> ContextConfig:
  """Merge CLI arguments, profile overrides and bundled defaults (in that order)."""
  return ContextConfig(
    phase=Phase(args.phase),
    dry=bool(args.dry),
    timezone=args.timezone or profile.config.timezone or defaults["timezone"],
    keymap=args.keymap or profile.config.keymap or defaults["keymap"],
    locale=args.locale or profile.config.locale or defaults["locale"],
    hostname=args.hostname,
    profile=profile.source,
    disk=args.disk,
    handoff_dir=args.handoff_dir,
  )


def _progress(index: int, total: int) -> str:
  return f"[{'▓' * index}{'░' * (total - index)}]"


def _run_installation(ctx: InstallerContext, ui: TUI, warnings: list[str]) -> None:
  """Run every step of the phase, stopping the whole phase at the first failure."""
  steps = get_install_steps(ctx)
  total = len(steps) - 1  # settings is not counted

  for index, step in enumerate(steps):
    step_name = format_step_name(step.__name__)
    logger.info("Step %d/%d: %s", index, total, step_name)

    if index > 0:
      ui.update_status(f"{_progress(index, total)} {step_name} · Step {index}/{total}", step_name)

    try:
      step(ctx, warnings)

    except KeyboardInterrupt:
      ui.cleanup()
      logger.warning("Interrupted during step '%s'", step_name)
      console.print("\n\n[prompt.invalid]Installation interrupted by user. Exiting...[/]")
      sys.exit(130)

    except Exception as e:
      ui.fail(step_name)
      ui.cleanup()
      logger.exception("Step '%s' failed", step_name)
      console.print(f"\n[prompt.invalid]Step '{step_name}' failed with error: {e}[/]")
      console.print("\n[prompt.invalid]Installation cannot continue.[/]")
      if ctx.dry:
        console.print("\n[prompt.invalid]This error occurred during dry run - actual installation might fail.[/]")
      sys.exit(1)

  ui.cleanup()


def _validate_arguments(args: Namespace, source: str, defaults: DefaultsConfig) -> None:
  errors = validate_cli_arguments(
    timezone=args.timezone or defaults["timezone"],
    locale=args.locale or defaults["locale"],
    keymap=args.keymap or defaults["keymap"],
    hostname=args.hostname,
    profile=source,
    disk=args.disk,
    dry=args.dry,
  )
  if not errors:
    return

  for err in errors:
    logger.error("Invalid argument: %s", err)
  console.print("\n[prompt.invalid]Invalid arguments provided:[/]")
  console.print("\n".join(f" • {err}" for err in errors))
  console.print("\n[yellow]Use --help for valid options[/]")
  sys.exit(1)


def _load_profile(source: str) -> InstallationProfile:
  try:
    return ProfileLoader.load(source)
  except ValueError as e:
    logger.error("Failed to load profile %s: %s", source, e)
    console.print(f"\n[prompt.invalid]Failed to load profile: {e}[/]")
    sys.exit(1)


def _print_outcome(config: ContextConfig, warnings: list[str]) -> None:
  console.print("\n")
  if config.dry:
    if warnings:
      console.print("[bold yellow]Warnings encountered during dry run:[/]")
      for warning in warnings:
        console.print(f" • {warning}")
      console.print()

    console.print("[bold green]Dry run completed successfully![/]")
    console.print("[bold green]Run without --dry flag to perform actual installation.[/]")

  elif config.phase is Phase.PRE_CHROOT:
    console.print("[bold green]Pre-chroot phase completed successfully![/]")
    console.print("[bold green]Run 'arch-chroot /mnt' and then 'python /archsetup/install.py post-chroot'.[/]")

  else:
    console.print("[bold green]Installation completed successfully![/]")
    console.print("[bold green]Leave the chroot with 'exit' and reboot.[/]")

  console.print()


def main() -> None:
  """Main entry point for the installer."""
  # Collect warnings during dry mode to display at the end
  warnings: list[str] = []
  defaults = load_defaults()
  parser = _create_argument_parser(defaults)
  args = parser.parse_args()

  if args.list_profiles:
    _print_profiles()
    return

  if args.phase is None:
    parser.error("the PHASE argument is required (pre-chroot or post-chroot)")

  log_path = configure_logging(args.log_file, args.verbose, console)
  logger.info("archsetup %s %s started (dry=%s)", __version__, args.phase, args.dry)

  source = _resolve_profile_source(args)
  if source is None:
    console.print("\n[prompt.invalid]No profile given. Use --profile with one of:[/]")
    console.print("\n".join(f" • {name}" for name in list_profiles()))
    sys.exit(1)

  _validate_arguments(args, source, defaults)
  profile = _load_profile(source)
  config = _create_context_config(args, profile, defaults)

  if not config.dry:
    _check_system_requirements(config.phase)

  ctx = InstallerContext(config, profile)
  ctx.ui = TUI(dry_mode=config.dry, phase=config.phase.value, profile=profile.name)

  try:
    console.print(f"[bold]archsetup {config.phase.value}[/] · profile [bold]{profile.name}[/] · log {log_path}")
    console.print()
    if config.dry:
      console.print("[bold yellow]DRY RUN MODE[/] - No actual changes will be made to your system")
      console.print()

    _run_installation(ctx, ctx.ui, warnings)
    logger.info("Phase %s finished", config.phase.value)
    _print_outcome(config, warnings)

  except Exception as e:
    logger.exception("Unexpected error during installation")
    console.print(f"\n[prompt.invalid]Unexpected error during installation: {e}[/]")
    sys.exit(1)


if __name__ == "__main__":
  try:
    main()

  except KeyboardInterrupt:
    console.print("\n[prompt.invalid]Installation interrupted. Exiting...[/]")
    sys.exit(130)
