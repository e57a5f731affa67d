"""Block device helpers shared by the fresh and dual-boot layouts."""

import re

ALIGN_SECTORS = 2048
EFI_SIZE_BYTES = 550 * 1024 * 1024

# GPT type codes as understood by sgdisk
BIOS_BOOT_CODE = "ef02"
EFI_CODE = "ef00"
LUKS_CODE = "8309"

IEC_UNITS = {"": 1, "K": 1024, "M": 1024**2, "G": 1024**3, "T": 1024**4}


def part_path(disk: str, number: int) -> str:
  """
  Path of partition `number` on `disk`.

  Kernel naming inserts a 'p' when the disk name already ends in a digit
  (/dev/nvme0n1p3, /dev/mmcblk0p1) and appends directly otherwise (/dev/sda3).
  """
  separator = "p" if disk[-1:].isdigit() else ""
  return f"{disk}{separator}{number}"


def align_up(sector: int, alignment: int = ALIGN_SECTORS) -> int:
  if sector % alignment == 0:
    return sector
  return ((sector + alignment - 1) // alignment) * alignment


def first_free_number(occupied: set[int], start: int = 1) -> int:
  number = start
  while number in occupied:
    number += 1
  return number


def parse_udev_properties(text: str) -> dict[str, str]:
  """Parse KEY=value lines as printed by `blkid -po udev`."""
  props: dict[str, str] = {}
  for line in text.splitlines():
    key, sep, value = line.strip().partition("=")
    if sep and key:
      props[key] = value
  return props


def parse_size(text: str) -> int | None:
  """
  Convert a human readable IEC size into bytes.

  Accepts '512M', '12.5 GB', '4096 B' and plain integers. Returns None when
  the text does not look like a size.
  """
  match = re.fullmatch(r"\s*(\d+(?:\.\d+)?)\s*([KMGT]?)(?:i?B)?\s*", text, flags=re.IGNORECASE)
  if not match:
    return None

  number, unit = match.groups()
  return int(float(number) * IEC_UNITS[unit.upper()])


def fresh_layout_commands(disk: str) -> list[str]:
  """sgdisk calls for BIOS boot, EFI and LUKS partitions on an emptied GPT."""
  return [
    f"sgdisk -o {disk}",
    f"sgdisk -n 1:0:+1M -t 1:{BIOS_BOOT_CODE} {disk}",
    f"sgdisk -n 2:0:+550M -t 2:{EFI_CODE} {disk}",
    f"sgdisk -n 3:0:0 -t 3:{LUKS_CODE} {disk}",
    "sync",
  ]
