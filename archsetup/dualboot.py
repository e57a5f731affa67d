"""
Dual-boot partitioning: give Linux the second half of a disk that holds Windows.

The Windows side is made to end exactly at the half boundary, the last
sector of the first half of the disk:

* the right-most Windows-family partition is found by GPT type GUID;
* a Basic data (NTFS) partition there is shrunk so it ends at the boundary;
* a Recovery partition there is copied to a new entry ending at the
  boundary; a destination overlapping the old entry aborts;
* an EFI or MSR partition there cannot be handled and aborts the run.

Planning is pure and works on Partition records; applying a plan shells out
to ntfsresize, sgdisk and dd. Every operation is one-shot: a failure aborts
and nothing is rolled back.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass

from archsetup.context import InstallerContext
from archsetup.disks import (
  EFI_CODE,
  EFI_SIZE_BYTES,
  LUKS_CODE,
  align_up,
  first_free_number,
  parse_size,
  parse_udev_properties,
  part_path,
)
from archsetup.utils import cmd, info, probe

logger = logging.getLogger(__name__)

WIN_EFI_GUID = "c12a7328-f81f-11d2-ba4b-00a0c93ec93b"
WIN_MSR_GUID = "e3c9e316-0b5c-4db8-817d-f92df00215ae"
WIN_BASIC_GUID = "ebd0a0a2-b9e5-4433-87c0-68b6b72699c7"
WIN_RECOVERY_GUID = "de94bba4-06d1-4d40-a16a-bfd50179d6ac"

WINDOWS_GUIDS = {WIN_EFI_GUID, WIN_MSR_GUID, WIN_BASIC_GUID, WIN_RECOVERY_GUID}


class PartitionPlanError(ValueError):
  """The disk cannot be split safely; nothing has been changed yet."""


@dataclass(frozen=True)
class Partition:
  path: str
  number: int
  start: int
  size: int
  type_guid: str
  fstype: str | None = None

  @property
  def end(self) -> int:
    return self.start + self.size - 1

  @property
  def is_windows(self) -> bool:
    return self.type_guid in WINDOWS_GUIDS

  @property
  def is_ntfs_basic(self) -> bool:
    return self.type_guid == WIN_BASIC_GUID and self.fstype == "ntfs"


@dataclass(frozen=True)
class Shrink:
  partition: Partition
  new_end: int

  @property
  def new_size(self) -> int:
    return self.new_end - self.partition.start + 1


@dataclass(frozen=True)
class MoveRecovery:
  partition: Partition
  new_start: int
  new_end: int
  new_number: int


@dataclass(frozen=True)
class WindowsPlan:
  half_end: int
  last: Partition
  shrink: Shrink | None = None
  move: MoveRecovery | None = None

  def occupied_after(self, partitions: list[Partition]) -> set[int]:
    """Partition numbers in use once the plan has been applied."""
    occupied = {p.number for p in partitions}
    if self.move:
      occupied.discard(self.move.partition.number)
      occupied.add(self.move.new_number)
    return occupied


@dataclass(frozen=True)
class LinuxPlan:
  efi_number: int
  efi_start: int
  efi_end: int
  luks_number: int
  luks_start: int


def half_end_sector(disk_bytes: int, sector_size: int) -> int:
  return (disk_bytes // 2) // sector_size - 1


def plan_windows_side(partitions: list[Partition], half_end: int) -> WindowsPlan:
  windows = [p for p in partitions if p.is_windows]
  if not windows:
    raise PartitionPlanError("No Windows-family partition detected.")

  last = max(windows, key=lambda p: p.end)

  if half_end <= last.start:
    raise PartitionPlanError("Half boundary lies before that partition's start; cannot fit.")

  # Only Windows partitions are ever resized or moved
  for p in partitions:
    if p.start > half_end:
      raise PartitionPlanError(
        f"Found a partition ({p.path}) starting beyond the half boundary. "
        "Aborting to avoid moving non-Windows partitions."
      )

  if last.type_guid == WIN_BASIC_GUID:
    if last.fstype != "ntfs":
      raise PartitionPlanError(f"Right-most Windows partition {last.path} is not NTFS; cannot shrink it.")

    if last.end <= half_end:
      return WindowsPlan(half_end=half_end, last=last)

    return WindowsPlan(half_end=half_end, last=last, shrink=Shrink(last, half_end))

  if last.type_guid == WIN_RECOVERY_GUID:
    if last.end == half_end:
      return WindowsPlan(half_end=half_end, last=last)

    new_start = half_end - last.size + 1
    before = [p for p in partitions if p.end < last.start]
    if not before:
      raise PartitionPlanError("Could not find the partition before Recovery.")
    previous = max(before, key=lambda p: p.end)

    if previous.end >= new_start:
      if not previous.is_ntfs_basic:
        raise PartitionPlanError("Previous partition before Recovery is not NTFS Basic; cannot shrink to make room.")
      if new_start - 1 <= previous.start:
        raise PartitionPlanError("Not enough space before the half boundary to move Recovery.")

    # The new entry is created while the old one still exists, so the two must not overlap
    if new_start <= last.end:
      raise PartitionPlanError(
        f"Recovery destination [{new_start} .. {half_end}] overlaps the current Recovery partition {last.path}; "
        "cannot create the new entry."
      )

    new_number = first_free_number({p.number for p in partitions}, start=2)
    move = MoveRecovery(last, new_start, half_end, new_number)
    return WindowsPlan(half_end=half_end, last=last, move=move)

  raise PartitionPlanError("Right-most Windows partition is EFI/MSR (not safely movable here).")


def plan_linux_side(half_end: int, sector_size: int, occupied: set[int]) -> LinuxPlan:
  """Second EFI partition right after the half boundary, LUKS on the rest."""
  efi_start = align_up(half_end + 1)
  efi_end = efi_start + EFI_SIZE_BYTES // sector_size - 1
  efi_number = first_free_number(occupied, start=2)
  luks_start = align_up(efi_end + 1)
  luks_number = first_free_number(occupied | {efi_number}, start=1)
  return LinuxPlan(efi_number, efi_start, efi_end, luks_number, luks_start)


def parse_ntfs_minimum(text: str) -> int | None:
  """
  Smallest size in bytes that ntfsresize --info reports the filesystem can shrink to.

  Newer ntfsresize prints "You might resize at N bytes"; older builds print
  a "minimum ... size" line with a human readable size.
  """
  exact = re.search(r"resize at (\d+) bytes", text)
  if exact:
    return int(exact.group(1))

  tokens: list[str] = []
  for line in text.splitlines():
    if re.search(r"minimum .*size", line, flags=re.IGNORECASE):
      tokens.extend(m.group(0) for m in re.finditer(r"\d+(?:\.\d+)?\s*[KMGT]?B", line))

  return parse_size(tokens[-1]) if tokens else None


# =============================================================================
# Applying plans
# =============================================================================


def read_partitions(disk: str) -> list[Partition]:
  """Read the GPT geometry of every partition on `disk`."""
  partitions: list[Partition] = []
  for line in probe(f"lsblk -rno PATH,TYPE {disk}").splitlines():
    fields = line.split()
    if len(fields) != 2 or fields[1] != "part":
      continue

    props = parse_udev_properties(probe(f"blkid -po udev {fields[0]}", check=False))
    if not (props.get("ID_PART_ENTRY_OFFSET") and props.get("ID_PART_ENTRY_SIZE")):
      continue

    partitions.append(
      Partition(
        path=fields[0],
        number=int(props.get("ID_PART_ENTRY_NUMBER", "0")),
        start=int(props["ID_PART_ENTRY_OFFSET"]),
        size=int(props["ID_PART_ENTRY_SIZE"]),
        type_guid=props.get("ID_PART_ENTRY_TYPE", "").lower(),
        fstype=props.get("ID_FS_TYPE"),
      )
    )

  return sorted(partitions, key=lambda p: p.start)


def _shrink_ntfs(ctx: InstallerContext, disk: str, shrink: Shrink, sector_size: int) -> None:
  assert ctx.ui is not None
  part = shrink.partition
  new_size_bytes = shrink.new_size * sector_size

  info(f"Checking NTFS minimum size for {part.path}...", ctx.ui)
  minimum = parse_ntfs_minimum(probe(f"ntfsresize --info --force {part.path} 2>&1", check=False))
  if minimum is not None and new_size_bytes < minimum:
    raise PartitionPlanError(f"Target size ({new_size_bytes}) < NTFS minimum ({minimum}) for {part.path}.")

  mountpoint = probe(f"lsblk -no MOUNTPOINT {part.path}", check=False)
  if mountpoint:
    info(f"Unmounting {part.path} from {mountpoint}", ctx.ui)
    cmd(f"umount -f {mountpoint} || true", ctx.dry, ctx.ui)

  info(f"Resizing NTFS {part.path} to {new_size_bytes} bytes...", ctx.ui)
  cmd(f"ntfsresize --force --size {new_size_bytes} {part.path}", ctx.dry, ctx.ui)

  info(f"Updating GPT entry for {part.path} (delete+recreate to new end)...", ctx.ui)
  cmd(f"sgdisk -d {part.number} {disk}", ctx.dry, ctx.ui)
  cmd(f"sgdisk -n {part.number}:{part.start}:{shrink.new_end} -t {part.number}:{part.type_guid} {disk}", ctx.dry, ctx.ui)
  cmd(f"partprobe {disk} || true", ctx.dry, ctx.ui)


def _move_recovery(ctx: InstallerContext, disk: str, move: MoveRecovery) -> None:
  assert ctx.ui is not None
  old = move.partition

  info(f"Creating temporary Recovery destination [{move.new_start} .. {move.new_end}]...", ctx.ui)
  cmd(f"sgdisk -n {move.new_number}:{move.new_start}:{move.new_end} -t {move.new_number}:{WIN_RECOVERY_GUID} {disk}", ctx.dry, ctx.ui)
  cmd(f"partprobe {disk} || true", ctx.dry, ctx.ui)
  new_path = part_path(disk, move.new_number)
  info(f"New Recovery partition: {new_path}", ctx.ui)

  info("Copying old Recovery to new location (dd)...", ctx.ui)
  cmd(f"dd if={old.path} of={new_path} bs=4M conv=fsync,noerror status=progress", ctx.dry, ctx.ui)
  cmd("sync", ctx.dry, ctx.ui)

  info("Deleting old Recovery partition...", ctx.ui)
  cmd(f"sgdisk -d {old.number} {disk}", ctx.dry, ctx.ui)
  cmd(f"partprobe {disk} || true", ctx.dry, ctx.ui)
  info("Recovery moved: Windows side now ends exactly at half.", ctx.ui)


def _create_linux_partitions(ctx: InstallerContext, disk: str, plan: LinuxPlan) -> tuple[str, str]:
  assert ctx.ui is not None
  cmd(f"sgdisk -n {plan.efi_number}:{plan.efi_start}:{plan.efi_end} -t {plan.efi_number}:{EFI_CODE} {disk}", ctx.dry, ctx.ui)
  cmd(f"partprobe {disk} || true", ctx.dry, ctx.ui)
  efi_part = part_path(disk, plan.efi_number)
  info(f"Created Linux EFI: {efi_part}", ctx.ui)

  cmd(f"sgdisk -n {plan.luks_number}:{plan.luks_start}:0 -t {plan.luks_number}:{LUKS_CODE} {disk}", ctx.dry, ctx.ui)
  cmd(f"partprobe {disk} || true", ctx.dry, ctx.ui)
  luks_part = part_path(disk, plan.luks_number)
  info(f"Created LUKS partition: {luks_part}", ctx.ui)

  cmd("sync", ctx.dry, ctx.ui)
  return efi_part, luks_part


def partition_dual_boot(ctx: InstallerContext) -> tuple[str, str]:
  """Make room next to Windows and create the Linux EFI and LUKS partitions."""
  assert ctx.ui is not None
  assert ctx.disk is not None
  disk = ctx.disk

  if ctx.dry and not os.path.exists(disk):
    ctx.ui.print(f"[yellow]{disk} does not exist, dual-boot planning is skipped in dry run[/]")
    return part_path(disk, 5), part_path(disk, 6)

  cmd(f"partprobe {disk} || true", ctx.dry, ctx.ui)
  sector_size = int(probe(f"blockdev --getss {disk}"))
  disk_bytes = int(probe(f"blockdev --getsize64 {disk}"))
  half_end = half_end_sector(disk_bytes, sector_size)
  info(f"Disk total: {disk_bytes} bytes; half-boundary end sector: {half_end}", ctx.ui)

  partitions = read_partitions(disk)
  if not partitions:
    raise PartitionPlanError(f"No partitions found on {disk}")

  plan = plan_windows_side(partitions, half_end)
  info(f"Right-most Windows-family partition: {plan.last.path} (start={plan.last.start}, end={plan.last.end})", ctx.ui)

  if plan.shrink:
    _shrink_ntfs(ctx, disk, plan.shrink, sector_size)
  if plan.move:
    _move_recovery(ctx, disk, plan.move)
  if not (plan.shrink or plan.move):
    info("Windows side already ends at or before the half boundary.", ctx.ui)

  linux = plan_linux_side(half_end, sector_size, plan.occupied_after(partitions))
  return _create_linux_partitions(ctx, disk, linux)
