"""
Machine profile management for archsetup.

Supports loading machine profiles from local files, HTTP URLs, or the embedded registry.
A profile describes one machine: disk layout and sizes, CPU and GPU vendor,
the account to create, and which optional steps apply to it.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path
from typing import cast

from rich.console import Console

from archsetup.registry import get_embedded_profile
from archsetup.validations import validate_profile_json

console = Console()
logger = logging.getLogger(__name__)


def _opt_str(data: dict[str, object], key: str) -> str | None:
  value = data.get(key)
  return value if isinstance(value, str) else None


@dataclass
class ProfileConfig:
  """Configuration overrides defined in a profile."""

  timezone: str | None = None
  keymap: str | None = None
  locale: str | None = None
  extra_locales: list[str] = field(default_factory=lambda: ["de_AT.UTF-8"])


@dataclass
class DiskLayout:
  """How the target disk is partitioned and carved into logical volumes."""

  layout: str = "fresh"
  nvme: bool = True
  swap: str = "32G"
  root: str = "512G"
  home_reserve: str = "256M"
  secure_erase: bool = False
  efi_masks: bool = False

  @property
  def dual_boot(self) -> bool:
    return self.layout == "dual-boot"


@dataclass
class UserAccount:
  """The regular account created on the new system."""

  name: str = "mss"
  uid: int | None = None
  shell: str = "/bin/zsh"
  groups: list[str] = field(default_factory=lambda: ["wheel", "audio", "video", "games", "power"])


@dataclass
class PackageSelection:
  """Package selection configuration."""

  additional: list[str] = field(default_factory=list)
  exclude: list[str] = field(default_factory=list)


@dataclass
class InstallationProfile:
  """Machine profile definition."""

  name: str
  description: str
  hostname: str
  cpu: str = "amd"
  gpu: str = "none"
  config: ProfileConfig = field(default_factory=ProfileConfig)
  disk: DiskLayout = field(default_factory=DiskLayout)
  user: UserAccount = field(default_factory=UserAccount)
  packages: PackageSelection = field(default_factory=PackageSelection)
  cache_server: list[str] = field(default_factory=list)
  refresh_mirrors: bool = False
  handoff: bool = True
  timesync: str = "timesyncd"
  firewall: bool = False
  kms_hook: bool = False
  quiet: bool = False
  post_install_commands: list[str] = field(default_factory=list)
  source: str | None = None

  @property
  def microcode(self) -> str:
    return f"{self.cpu}-ucode"

  @classmethod
  def from_dict(cls, data: dict[str, object]) -> InstallationProfile:
    """Create profile from dictionary."""
    config_data = data.get("config", {})
    config = (
      ProfileConfig(
        timezone=_opt_str(config_data, "timezone"),
        keymap=_opt_str(config_data, "keymap"),
        locale=_opt_str(config_data, "locale"),
        extra_locales=cast(list[str], config_data.get("extra_locales", ["de_AT.UTF-8"])),
      )
      if isinstance(config_data, dict)
      else ProfileConfig()
    )

    disk_data = data.get("disk", {})
    defaults = DiskLayout()
    disk = (
      DiskLayout(
        layout=str(disk_data.get("layout", defaults.layout)),
        nvme=bool(disk_data.get("nvme", defaults.nvme)),
        swap=str(disk_data.get("swap", defaults.swap)),
        root=str(disk_data.get("root", defaults.root)),
        home_reserve=str(disk_data.get("home_reserve", defaults.home_reserve)),
        secure_erase=bool(disk_data.get("secure_erase", False)),
        efi_masks=bool(disk_data.get("efi_masks", False)),
      )
      if isinstance(disk_data, dict)
      else defaults
    )

    user_data = data.get("user", {})
    user = (
      UserAccount(
        name=str(user_data.get("name", "mss")),
        uid=cast(int | None, user_data.get("uid")),
        shell=str(user_data.get("shell", "/bin/zsh")),
        groups=cast(list[str], user_data.get("groups", UserAccount().groups)),
      )
      if isinstance(user_data, dict)
      else UserAccount()
    )

    packages_data = data.get("packages", {})
    packages = (
      PackageSelection(
        additional=cast(list[str], packages_data.get("additional", [])),
        exclude=cast(list[str], packages_data.get("exclude", [])),
      )
      if isinstance(packages_data, dict)
      else PackageSelection()
    )

    return cls(
      name=str(data["name"]),
      description=str(data["description"]),
      hostname=str(data["hostname"]),
      cpu=str(data.get("cpu", "amd")),
      gpu=str(data.get("gpu", "none")),
      config=config,
      disk=disk,
      user=user,
      packages=packages,
      cache_server=cast(list[str], data.get("cache_server", [])),
      refresh_mirrors=bool(data.get("refresh_mirrors", False)),
      handoff=bool(data.get("handoff", True)),
      timesync=str(data.get("timesync", "timesyncd")),
      firewall=bool(data.get("firewall", False)),
      kms_hook=bool(data.get("kms_hook", False)),
      quiet=bool(data.get("quiet", False)),
      post_install_commands=cast(list[str], data.get("post_install_commands", [])),
    )


class ProfileLoader:
  """Handles loading profiles from the registry, local files or HTTP URLs."""

  @staticmethod
  def _load_from_url(url: str) -> dict[str, object]:
    """Load JSON data from HTTP URL."""
    try:
      req = urllib.request.Request(
        url,
        headers={
          "User-Agent": "archsetup/0.1.0",
          "Accept": "application/json",
        },
      )

      with urllib.request.urlopen(req, timeout=10) as response:
        status_code = getattr(response, "status", getattr(response, "code", 200))

        if status_code != 200:
          reason = getattr(response, "reason", "Unknown error")
          raise ValueError(f"HTTP {status_code}: {reason}")

        content_type = response.headers.get("Content-Type", "")
        if content_type and "application/json" not in content_type and "text/json" not in content_type:
          console.print(f"[yellow]Warning: Server returned Content-Type '{content_type}', expected JSON[/]")

        parsed_data = json.loads(response.read().decode("utf-8"))
        if not isinstance(parsed_data, dict):
          raise ValueError("Profile JSON must be an object")

        return parsed_data

    except urllib.error.URLError as e:
      raise ValueError(f"Failed to load profile from URL: {e}") from e

    except json.JSONDecodeError as e:
      raise ValueError(f"Invalid JSON in profile: {e}") from e

  @staticmethod
  def _load_from_file(file_path: str | Path) -> dict[str, object]:
    """Load JSON data from local file."""
    try:
      path = Path(file_path)
      if not path.exists():
        raise FileNotFoundError(f"Profile file not found: {path}")

      with open(path, "r", encoding="utf-8") as f:
        parsed_data = json.load(f)
        if not isinstance(parsed_data, dict):
          raise ValueError("Profile JSON must be an object")

        return parsed_data

    except json.JSONDecodeError as e:
      raise ValueError(f"Invalid JSON in profile file: {e}") from e

    except OSError as e:
      raise ValueError(f"Failed to read profile file: {e}") from e

  @classmethod
  def load(cls, source: str) -> InstallationProfile:
    """
    Load profile from source (profile name, file path, or HTTP URL).

    Args:
        source: Profile name (e.g., 'pc'), HTTP URL, or local file path

    Returns:
        InstallationProfile object

    Raises:
        ValueError: If profile cannot be loaded or is invalid
    """
    data: dict[str, object] | None = None
    if not source.startswith(("http://", "https://", "/", "./")):
      data = get_embedded_profile(source)

    if data is None:
      if source.startswith(("http://", "https://")):
        data = cls._load_from_url(source)
      else:
        data = cls._load_from_file(source)

    validation_issues = validate_profile_json(data)
    if validation_issues:
      console.print(f"\n[prompt.invalid]Profile validation failed for '{source}':[/]")
      for issue in validation_issues:
        console.print(f" • {issue}")

      raise ValueError(f"Profile contains {len(validation_issues)} validation error(s)")

    profile = InstallationProfile.from_dict(data)
    profile.source = source
    logger.info("Loaded profile '%s' from %s", profile.name, source)
    return profile
