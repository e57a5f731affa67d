import re

import pytest

from archsetup.context import InstallerContext
from archsetup.profiles import ProfileLoader
from archsetup.types import ContextConfig, Phase

DRY_RUN = re.compile(r"\[DRY RUN\] (.*?)\[/\]\[/\]$")


class RecordingUI:
  """Stand-in for the TUI that keeps every printed line."""

  def __init__(self) -> None:
    self.lines: list[str] = []

  def initialize(self) -> None:
    pass

  def update_status(self, message: str, step_name: str = "") -> None:
    pass

  def print(self, message: str) -> None:
    self.lines.append(message)

  def fail(self, step_name: str) -> None:
    self.lines.append(f"FAILED {step_name}")

  def cleanup(self) -> None:
    pass

  @property
  def commands(self) -> list[str]:
    """Everything announced with a [DRY RUN] prefix, markup stripped."""
    return [match.group(1) for line in self.lines if (match := DRY_RUN.search(line))]

  @property
  def text(self) -> str:
    return "\n".join(self.lines)


def make_context(profile_name: str, phase: Phase, **overrides) -> InstallerContext:
  profile = ProfileLoader.load(profile_name)
  config = ContextConfig(
    phase=phase,
    dry=True,
    timezone="Europe/Vienna",
    keymap="de-latin1-nodeadkeys",
    locale="en_US.UTF-8",
    profile=profile_name,
    **overrides,
  )
  ctx = InstallerContext(config, profile)
  ctx.ui = RecordingUI()
  return ctx


@pytest.fixture
def no_prompts(monkeypatch):
  """Answer every interactive question without a terminal."""
  monkeypatch.setattr("archsetup.pre_chroot.set_luks_pass", lambda: "luks-secret")
  monkeypatch.setattr("archsetup.pre_chroot.set_drives", lambda dry_run=False: ["/dev/nvme0", "/dev/nvme1"])
  monkeypatch.setattr("archsetup.pre_chroot.set_disk", lambda nvme_only=False, dry_run=False: "/dev/nvme0n1")
  monkeypatch.setattr("archsetup.pre_chroot.Confirm.ask", lambda *args, **kwargs: True)
  monkeypatch.setattr("archsetup.post_chroot.set_password", lambda user: f"{user}-secret")
  monkeypatch.setattr("archsetup.post_chroot.ask_disk_path", lambda nvme_only, dry_run: "/dev/nvme2n1")
