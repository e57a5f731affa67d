import pytest

from archsetup import dualboot
from archsetup.disks import EFI_SIZE_BYTES
from archsetup.dualboot import (
  WIN_BASIC_GUID,
  WIN_EFI_GUID,
  WIN_MSR_GUID,
  WIN_RECOVERY_GUID,
  Partition,
  PartitionPlanError,
  half_end_sector,
  parse_ntfs_minimum,
  partition_dual_boot,
  plan_linux_side,
  plan_windows_side,
)
from archsetup.types import Phase

from conftest import make_context

LINUX_FS_GUID = "0fc63daf-8483-4772-8e79-3d69d8477de4"
HALF = 1_000_000


def efi() -> Partition:
  return Partition("/dev/nvme0n1p1", 1, 2048, 204_800, WIN_EFI_GUID, "vfat")


def msr() -> Partition:
  return Partition("/dev/nvme0n1p2", 2, 206_848, 32_768, WIN_MSR_GUID)


def basic(size: int, fstype: str | None = "ntfs") -> Partition:
  return Partition("/dev/nvme0n1p3", 3, 239_616, size, WIN_BASIC_GUID, fstype)


def recovery(start: int, size: int = 2_000) -> Partition:
  return Partition("/dev/nvme0n1p4", 4, start, size, WIN_RECOVERY_GUID, "ntfs")


def test_half_end_sector():
  assert half_end_sector(2 * 1024**4, 512) == 2_147_483_647
  assert half_end_sector(1024**4, 4096) == 134_217_727


def test_basic_partition_past_the_boundary_is_shrunk():
  partitions = [efi(), msr(), basic(1_500_000)]
  plan = plan_windows_side(partitions, HALF)

  assert plan.last.number == 3
  assert plan.move is None
  assert plan.shrink is not None
  assert plan.shrink.new_end == HALF
  assert plan.shrink.new_size == HALF - 239_616 + 1


def test_basic_partition_inside_first_half_needs_nothing():
  plan = plan_windows_side([efi(), msr(), basic(500_000)], HALF)
  assert plan.shrink is None
  assert plan.move is None


def test_basic_partition_ending_exactly_at_boundary_needs_nothing():
  plan = plan_windows_side([efi(), msr(), basic(HALF - 239_616 + 1)], HALF)
  assert plan.last.end == HALF
  assert plan.shrink is None


def test_non_ntfs_basic_partition_aborts():
  with pytest.raises(PartitionPlanError, match="not NTFS"):
    plan_windows_side([efi(), msr(), basic(1_500_000, fstype="exfat")], HALF)


def test_recovery_overlapping_its_destination_on_the_left_aborts():
  partitions = [efi(), msr(), basic(759_384), recovery(999_000)]
  with pytest.raises(PartitionPlanError, match="overlaps the current Recovery"):
    plan_windows_side(partitions, HALF)


def test_recovery_moving_right_gets_a_new_number():
  partitions = [efi(), msr(), basic(500_000), recovery(739_616)]
  plan = plan_windows_side(partitions, HALF)

  assert plan.shrink is None
  assert plan.move is not None
  assert plan.move.new_number == 5
  assert plan.move.new_end == HALF
  assert plan.occupied_after(partitions) == {1, 2, 3, 5}


def test_recovery_already_at_boundary_needs_nothing():
  partitions = [efi(), msr(), basic(500_000), recovery(HALF - 2_000 + 1)]
  plan = plan_windows_side(partitions, HALF)
  assert plan.move is None
  assert plan.shrink is None


def test_recovery_overlapping_its_own_destination_on_the_right_aborts():
  partitions = [efi(), msr(), basic(500_000), recovery(997_000)]
  with pytest.raises(PartitionPlanError, match="overlaps the current Recovery"):
    plan_windows_side(partitions, HALF)


def test_recovery_behind_non_ntfs_partition_aborts():
  blocker = Partition("/dev/nvme0n1p3", 3, 239_616, 759_384, LINUX_FS_GUID, "ext4")
  with pytest.raises(PartitionPlanError, match="not NTFS Basic"):
    plan_windows_side([efi(), msr(), blocker, recovery(999_000)], HALF)


def test_no_windows_partitions_aborts():
  linux = Partition("/dev/sda1", 1, 2048, 10_000, LINUX_FS_GUID, "ext4")
  with pytest.raises(PartitionPlanError, match="No Windows"):
    plan_windows_side([linux], HALF)


def test_partition_beyond_the_boundary_aborts():
  stray = Partition("/dev/nvme0n1p5", 5, 1_200_000, 10_000, LINUX_FS_GUID, "ext4")
  with pytest.raises(PartitionPlanError, match="beyond the half boundary"):
    plan_windows_side([efi(), msr(), basic(500_000), stray], HALF)


def test_efi_as_last_windows_partition_aborts():
  with pytest.raises(PartitionPlanError, match="EFI/MSR"):
    plan_windows_side([efi()], HALF)


def test_boundary_before_last_partition_start_aborts():
  with pytest.raises(PartitionPlanError, match="cannot fit"):
    plan_windows_side([efi(), msr(), basic(1_500_000)], 200_000)


def test_linux_side_layout():
  plan = plan_linux_side(HALF, 512, {1, 2, 3, 4})

  assert plan.efi_start == 1_001_472
  assert plan.efi_start % 2048 == 0
  assert plan.efi_end == plan.efi_start + EFI_SIZE_BYTES // 512 - 1
  assert plan.luks_start % 2048 == 0
  assert plan.luks_start > plan.efi_end
  assert plan.efi_number == 5
  assert plan.luks_number == 6


def test_linux_side_fills_gaps_in_numbering():
  plan = plan_linux_side(HALF, 512, {1, 2, 4})
  assert plan.efi_number == 3
  assert plan.luks_number == 5


def test_parse_ntfs_minimum_prefers_exact_bytes():
  text = "Checking filesystem consistency ...\nYou might resize at 123456789 bytes or 124 MB (freeing 900 MB).\n"
  assert parse_ntfs_minimum(text) == 123_456_789


def test_parse_ntfs_minimum_falls_back_to_size_line():
  assert parse_ntfs_minimum("Estimated minimum size: 12.5 GB\n") == int(12.5 * 1024**3)
  assert parse_ntfs_minimum("ERROR: volume is hibernated\n") is None


def test_dry_run_without_the_disk_uses_placeholder_partitions():
  ctx = make_context("nb-ws-mss", Phase.PRE_CHROOT, disk="/dev/nvme99n1")
  ctx.disk = "/dev/nvme99n1"

  assert partition_dual_boot(ctx) == ("/dev/nvme99n1p5", "/dev/nvme99n1p6")
  assert "planning is skipped" in ctx.ui.text


DISK = "/dev/nvme0n1"
# 8_000_000 sectors of 512 bytes, so the half boundary is sector 3_999_999
DISK_BYTES = 8_000_000 * 512


def udev(partition: Partition) -> str:
  lines = [
    f"ID_PART_ENTRY_NUMBER={partition.number}",
    f"ID_PART_ENTRY_OFFSET={partition.start}",
    f"ID_PART_ENTRY_SIZE={partition.size}",
    f"ID_PART_ENTRY_TYPE={partition.type_guid}",
  ]
  if partition.fstype:
    lines.append(f"ID_FS_TYPE={partition.fstype}")
  return "\n".join(lines)


@pytest.fixture
def fake_disk(monkeypatch):
  """Serve canned answers to the disk queries for a given partition table."""
  real_exists = dualboot.os.path.exists
  monkeypatch.setattr(dualboot.os.path, "exists", lambda path: path == DISK or real_exists(path))

  def install(layout: list[Partition], ntfs_info: str = "") -> None:
    by_path = {p.path: p for p in layout}

    def answer(command: str, check: bool = True) -> str:
      if command == f"blockdev --getss {DISK}":
        return "512"
      if command == f"blockdev --getsize64 {DISK}":
        return str(DISK_BYTES)
      if command == f"lsblk -rno PATH,TYPE {DISK}":
        return "\n".join([f"{DISK} disk"] + [f"{p.path} part" for p in layout])
      if command.startswith("blkid -po udev "):
        return udev(by_path[command.split()[-1]])
      if command.startswith("ntfsresize --info"):
        return ntfs_info
      if command.startswith("lsblk -no MOUNTPOINT"):
        return ""
      raise AssertionError(f"unexpected query: {command}")

    monkeypatch.setattr(dualboot, "probe", answer)

  return install


def windows_disk(basic_size: int, with_recovery: bool = False) -> list[Partition]:
  layout = [
    Partition(f"{DISK}p1", 1, 2048, 204_800, WIN_EFI_GUID, "vfat"),
    Partition(f"{DISK}p2", 2, 206_848, 32_768, WIN_MSR_GUID),
    Partition(f"{DISK}p3", 3, 239_616, basic_size, WIN_BASIC_GUID, "ntfs"),
  ]
  if with_recovery:
    layout.append(Partition(f"{DISK}p4", 4, 3_000_000, 2_000, WIN_RECOVERY_GUID, "ntfs"))
  return layout


def dual_boot_context():
  ctx = make_context("nb-ws-mss", Phase.PRE_CHROOT, disk=DISK)
  ctx.disk = DISK
  return ctx


def test_ntfs_shrink_then_linux_partitions(fake_disk):
  fake_disk(windows_disk(5_000_000), "You might resize at 1000000000 bytes or 1000 MB (freeing 3 GB).")
  ctx = dual_boot_context()

  assert partition_dual_boot(ctx) == (f"{DISK}p4", f"{DISK}p5")
  assert ctx.ui.commands == [
    f"partprobe {DISK} || true",
    f"ntfsresize --force --size {(3_999_999 - 239_616 + 1) * 512} {DISK}p3",
    f"sgdisk -d 3 {DISK}",
    f"sgdisk -n 3:239616:3999999 -t 3:{WIN_BASIC_GUID} {DISK}",
    f"partprobe {DISK} || true",
    f"sgdisk -n 4:4001792:5128191 -t 4:ef00 {DISK}",
    f"partprobe {DISK} || true",
    f"sgdisk -n 5:5128192:0 -t 5:8309 {DISK}",
    f"partprobe {DISK} || true",
    "sync",
  ]


def test_shrinking_below_the_ntfs_minimum_aborts(fake_disk):
  fake_disk(windows_disk(5_000_000), "You might resize at 3000000000 bytes or 3000 MB (freeing 1 GB).")
  ctx = dual_boot_context()

  with pytest.raises(PartitionPlanError, match="NTFS minimum"):
    partition_dual_boot(ctx)
  assert not any(command.startswith("ntfsresize --force") for command in ctx.ui.commands)
  assert not any(command.startswith("sgdisk") for command in ctx.ui.commands)


def test_recovery_copy_then_linux_partitions_reuse_its_number(fake_disk):
  fake_disk(windows_disk(2_000_000, with_recovery=True))
  ctx = dual_boot_context()

  assert partition_dual_boot(ctx) == (f"{DISK}p4", f"{DISK}p6")
  commands = ctx.ui.commands
  assert commands[1:7] == [
    f"sgdisk -n 5:3998000:3999999 -t 5:{WIN_RECOVERY_GUID} {DISK}",
    f"partprobe {DISK} || true",
    f"dd if={DISK}p4 of={DISK}p5 bs=4M conv=fsync,noerror status=progress",
    "sync",
    f"sgdisk -d 4 {DISK}",
    f"partprobe {DISK} || true",
  ]
  assert f"sgdisk -n 4:4001792:5128191 -t 4:ef00 {DISK}" in commands
  assert f"sgdisk -n 6:5128192:0 -t 6:8309 {DISK}" in commands
  assert not any(command.startswith("ntfsresize") for command in commands)
