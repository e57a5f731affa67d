import json
import logging
import os
import re
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Callable

from rich.console import Console
from rich.markup import escape

from archsetup.input import DiskPrompt, DrivesPrompt, IntegerPrompt, PasswordPrompt
from archsetup.types import DefaultsConfig, PackagesConfig, ServicesConfig
from archsetup.tui import TUI
from archsetup.validations import validate_defaults_json

console = Console()
logger = logging.getLogger(__name__)


def get_resource_path(relative_path: str) -> str:
  """Get absolute path to a resource bundled inside the archsetup package."""
  base_path = os.path.dirname(os.path.abspath(__file__))
  return os.path.join(base_path, relative_path)


def info(message: str, ui: TUI) -> None:
  logger.info(message)
  ui.print(f"[bold green][INFO][/] {message}")


def cmd(command: str, dry_run: bool, ui: TUI) -> None:
  if dry_run:
    logger.info("DRY RUN %s", command)
    message = f"[bold green][dim][DRY RUN] {command}[/][/]"
    ui.print(message)
    return

  logger.info("CMD %s", command)
  try:
    _ = subprocess.run(command, check=True, shell=True)

  except subprocess.CalledProcessError as e:
    logger.error("Command '%s' failed with exit status %s", command, e.returncode)
    console.print(f"\n[bold red][ABORT] Command '{command}' failed with error: {e}[/]")
    sys.exit(1)


def scmd(command: str, stdin_data: str, dry_run: bool, ui: TUI) -> None:
  """Execute a command with sensitive stdin data without exposing it in process list."""
  if dry_run:
    logger.info("DRY RUN %s (with stdin data)", command)
    message = f"[bold green][dim][DRY RUN] {command} (with stdin data)[/][/]"
    ui.print(message)
    return

  logger.info("CMD %s (with stdin data)", command)
  try:
    process = subprocess.Popen(
      command, shell=True, stdin=subprocess.PIPE, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True
    )

    stdout, stderr = process.communicate(input=stdin_data)
    if process.returncode != 0:
      raise subprocess.CalledProcessError(process.returncode, command, output=stdout, stderr=stderr)

  except subprocess.CalledProcessError as e:
    logger.error("Command '%s' failed with exit status %s", command, e.returncode)
    console.print(f"\n[bold red][ABORT] Command '{command}' failed with error: {e}[/]")

    if e.stderr:
      console.print(f"\n[bold red]stderr: {e.stderr}[/]")

    sys.exit(1)


def probe(command: str, check: bool = True) -> str:
  """
  Run a read-only query and return its stripped stdout.

  Queries change nothing, so they also run in dry mode. With check=False a
  failing query yields whatever it printed instead of aborting.
  """
  logger.debug("PROBE %s", command)
  try:
    result = subprocess.run(command, check=check, shell=True, capture_output=True, text=True)

  except subprocess.CalledProcessError as e:
    logger.error("Query '%s' failed with exit status %s", command, e.returncode)
    console.print(f"\n[bold red][ABORT] Command '{command}' failed with error: {e}[/]")
    if e.stderr:
      console.print(f"\n[bold red]stderr: {e.stderr}[/]")
    sys.exit(1)

  return result.stdout.strip()


def write(lines: list[str], path: str, dry_run: bool, ui: TUI) -> None:
  assert isinstance(lines, list)
  if dry_run:
    message = f"[bold green][dim][DRY RUN] Writing to {path}:[/][/]"
    ui.print(message)
    for line in lines:
      ui.print(f"[dim]{escape(line)}[/]")
    return

  logger.info("WRITE %s", path)
  Path(path).parent.mkdir(parents=True, exist_ok=True)
  with open(path, "w") as f:
    for line in lines:
      print(line, file=f)


def append(lines: list[str], path: str, dry_run: bool, ui: TUI) -> None:
  assert isinstance(lines, list)
  if dry_run:
    message = f"[bold green][dim][DRY RUN] Appending to {path}:[/][/]"
    ui.print(message)
    for line in lines:
      ui.print(f"[dim]{escape(line)}[/]")
    return

  logger.info("APPEND %s", path)
  with open(path, "a") as f:
    for line in lines:
      print(line, file=f)


def edit(path: str, transform: Callable[[str], str], dry_run: bool, ui: TUI) -> None:
  """Rewrite a file through a text transform, the way `sed -i` would."""
  name = getattr(transform, "__name__", "edit")
  if dry_run:
    ui.print(f"[bold green][dim][DRY RUN] Editing {path} ({name})[/][/]")
    return

  logger.info("EDIT %s (%s)", path, name)
  try:
    with open(path, "r") as f:
      content = f.read()

    with open(path, "w") as f:
      _ = f.write(transform(content))

  except OSError as e:
    logger.error("Editing %s failed: %s", path, e)
    console.print(f"\n[bold red][ABORT] Could not edit {path}: {e}[/]")
    sys.exit(1)


def copy_installer(destination: str, dry_run: bool, ui: TUI) -> None:
  """Copy install.py and the archsetup package so the next phase can run inside the chroot."""
  package_dir = Path(get_resource_path(""))
  entry_point = package_dir.parent / "install.py"
  if dry_run:
    ui.print(f"[bold green][dim][DRY RUN] Copying {entry_point} and {package_dir} to {destination}[/][/]")
    return

  logger.info("COPY %s, %s -> %s", entry_point, package_dir, destination)
  Path(destination).mkdir(parents=True, exist_ok=True)
  _ = shutil.copy2(entry_point, destination)
  _ = shutil.copytree(
    package_dir, Path(destination) / package_dir.name, dirs_exist_ok=True, ignore=shutil.ignore_patterns("__pycache__")
  )


def list_disks(nvme_only: bool = False) -> list[tuple[str, int]]:
  """Whole-disk devices under /dev with their size in bytes."""
  disks_regex = r"^nvme\d+n\d+$" if nvme_only else r"^(nvme\d+n\d+|sd[a-z]+|vd[a-z]+|mmcblk\d+)$"
  try:
    names = sorted(disk for disk in os.listdir("/dev") if re.match(disks_regex, disk))
  except OSError:
    return []

  disks = []
  for name in names:
    try:
      sectors = int(Path(f"/sys/block/{name}/size").read_text().strip())
    except (OSError, ValueError):
      sectors = 0
    disks.append((f"/dev/{name}", sectors * 512))
  return disks


def set_disk(nvme_only: bool = False, dry_run: bool = False) -> str:
  disks = list_disks(nvme_only)
  kind = "NVMe device" if nvme_only else "disk"

  if not disks:
    console.print(f"\nNo {kind}s detected.")
    example = "/dev/nvme0n1" if nvme_only else "/dev/sda"
    return DiskPrompt.ask(f"Enter the target {kind} (e.g., {example})", nvme_only=nvme_only, must_exist=not dry_run)

  console.print()
  console.print("Disks:")
  for i, (disk, size) in enumerate(disks, start=1):
    console.print(f" {i}. {disk} ({size / 1024**3:.1f} GiB)")

  console.print()
  choices = [str(i) for i in range(1, len(disks) + 1)]
  disk_choice = IntegerPrompt.ask(f"Choose the target {kind} (enter number)", choices=choices)
  return disks[disk_choice - 1][0]


def set_drives(dry_run: bool = False) -> list[str]:
  console.print()
  console.print(
    "Note: Only controller devices like /dev/nvmeX are supported. "
    "Do NOT use namespace devices like /dev/nvmeXn1 or /dev/ngXnY."
  )
  controllers = sorted({re.sub(r"n\d+$", "", disk) for disk, _size in list_disks(nvme_only=True)})
  example = controllers[0] if controllers else "/dev/nvme0"
  return DrivesPrompt.ask(f"Enter the target drive(s) (space-separated, e.g., {example})", must_exist=not dry_run)


def set_luks_pass() -> str:
  return PasswordPrompt.ask("Set disk encryption password (hidden)")


def set_password(user: str) -> str:
  return PasswordPrompt.ask(f"Provide password for {user} (hidden)")


def ask_disk_path(nvme_only: bool, dry_run: bool) -> str:
  """Ask for a device path directly, used when no handoff file is present."""
  example = "/dev/nvme0n1" if nvme_only else "/dev/sda"
  return DiskPrompt.ask(f"Enter the target device (e.g., {example})", nvme_only=nvme_only, must_exist=not dry_run)


def _load_config() -> dict[str, object]:
  config_file = get_resource_path("config.json")
  try:
    with open(config_file, "r") as f:
      data = json.load(f)
      if not isinstance(data, dict):
        raise ValueError("config.json must be an object")
      return data

  except (FileNotFoundError, json.JSONDecodeError) as e:
    console.print(f"\n[bold red]Error loading config.json: {e}[/]")
    sys.exit(1)

  except ValueError as e:
    console.print(f"\n[bold red]Invalid config.json format: {e}[/]")
    sys.exit(1)


def load_defaults() -> DefaultsConfig:
  """Load default values from the bundled config.json file."""
  config_data = _load_config()
  try:
    data = validate_defaults_json(config_data.get("defaults"))
    return DefaultsConfig(
      timezone=str(data["timezone"]),
      locale=str(data["locale"]),
      keymap=str(data["keymap"]),
      cache_server=str(data["cache_server"]),
      reflector=[str(arg) for arg in data["reflector"]],
    )

  except (KeyError, ValueError) as e:
    console.print(f"\n[bold red]Invalid config.json format: {e}[/]")
    sys.exit(1)


def load_packages() -> PackagesConfig:
  data = _load_config().get("packages", {})
  if not isinstance(data, dict):
    data = {}

  return PackagesConfig(
    base=[str(pkg) for pkg in data.get("base", [])],
    desktop=[str(pkg) for pkg in data.get("desktop", [])],
    additional=[str(pkg) for pkg in data.get("additional", [])],
  )


def load_services() -> ServicesConfig:
  data = _load_config().get("services", {})
  if not isinstance(data, dict):
    data = {}

  return ServicesConfig(
    enable=[str(svc) for svc in data.get("enable", [])],
    disable=[str(svc) for svc in data.get("disable", [])],
  )


def format_step_name(name: str) -> str:
  """
  Format step name from function name string.

  Args:
      name: Step function name

  Returns:
      Formatted step name (e.g., "Disk Setup")
  """
  return name.replace("step_", "").replace("_", " ").title().lstrip("0123456789 ")
