"""
Values passed from the pre-chroot phase to the post-chroot phase.

The pre-chroot phase leaves small text files in the root of the new system;
inside the chroot they sit in "/" and are read back by the post-chroot phase.
"""

import logging
import os
from dataclasses import dataclass

from archsetup.tui import TUI
from archsetup.utils import write

logger = logging.getLogger(__name__)

TARGET_DISK_FILE = "target_disk.txt"
LINUX_EFI_PART_FILE = "linux_efi_part.txt"
LUKS_PART_FILE = "luks_part.txt"
PROFILE_FILE = "profile.txt"


@dataclass
class Handoff:
  target_disk: str | None = None
  linux_efi_part: str | None = None
  luks_part: str | None = None
  profile: str | None = None

  def files(self) -> list[tuple[str, str]]:
    values = [
      (TARGET_DISK_FILE, self.target_disk),
      (LINUX_EFI_PART_FILE, self.linux_efi_part),
      (LUKS_PART_FILE, self.luks_part),
      (PROFILE_FILE, self.profile),
    ]
    return [(name, value) for name, value in values if value]


def save_handoff(handoff: Handoff, directory: str, dry_run: bool, ui: TUI) -> None:
  for name, value in handoff.files():
    write([value], os.path.join(directory, name), dry_run, ui)


def _read_value(directory: str, name: str) -> str | None:
  path = os.path.join(directory, name)
  try:
    with open(path, "r") as f:
      value = f.read().strip()
  except FileNotFoundError:
    return None

  logger.info("Read %s from %s", value, path)
  return value or None


def load_handoff(directory: str) -> Handoff:
  """Read whatever handoff files exist in `directory`; missing ones stay None."""
  return Handoff(
    target_disk=_read_value(directory, TARGET_DISK_FILE),
    linux_efi_part=_read_value(directory, LINUX_EFI_PART_FILE),
    luks_part=_read_value(directory, LUKS_PART_FILE),
    profile=_read_value(directory, PROFILE_FILE),
  )
