from __future__ import annotations
from archsetup.profiles import InstallationProfile
from archsetup.tui import TUI
from archsetup.types import ContextConfig, Phase


class InstallerContext:
  """
  Holds the state and configuration for one installation phase.

  This context object is passed between installation steps to maintain
  user choices and system state throughout the phase, including the
  selected disk, partition paths and credentials.
  """

  def __init__(self, config: ContextConfig, profile: InstallationProfile) -> None:
    self.config: ContextConfig = config
    self.profile: InstallationProfile = profile
    self.ui: TUI | None = None

    # Installation target, "/mnt" before the chroot and "/" inside it
    self.target: str = "/mnt" if config.phase is Phase.PRE_CHROOT else ""

    # User-provided configuration
    self.host: str = config.hostname or profile.hostname
    self.disk: str | None = None
    self.drives: list[str] = []
    self.luks_pass: str | None = None
    self.root_pass: str | None = None
    self.user_pass: str | None = None

    # System-generated paths
    self.efi_part: str | None = None
    self.luks_part: str | None = None
    self.mapper_name: str = "cryptlvm"
    self.volume_group: str = "vg"

  @property
  def dry(self) -> bool:
    """Access dry run flag from config."""
    return self.config.dry

  def lv_path(self, name: str) -> str:
    return f"/dev/{self.volume_group}/{name}"
