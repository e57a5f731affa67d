import logging
import sys

from rich.console import Console
from rich.prompt import Confirm

from archsetup.context import InstallerContext
from archsetup.disks import fresh_layout_commands, part_path
from archsetup.dualboot import partition_dual_boot
from archsetup.edits import add_cache_server, enforce_efi_masks, use_noatime
from archsetup.handoff import Handoff, save_handoff
from archsetup.sanitize import secure_erase
from archsetup.utils import (
  cmd,
  copy_installer,
  edit,
  info,
  load_defaults,
  load_packages,
  scmd,
  set_disk,
  set_drives,
  set_luks_pass,
)

console = Console()
logger = logging.getLogger(__name__)

TARGET = "/mnt"
INSTALLER_DIR = f"{TARGET}/archsetup"


def step_0_settings(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  profile = ctx.profile
  config_items = [
    ("Profile", f"{profile.name} ({profile.description})"),
    ("Hostname", ctx.host),
    ("Layout", profile.disk.layout),
    ("Keymap", ctx.config.keymap),
    ("Locale", ctx.config.locale),
    ("Timezone", ctx.config.timezone),
  ]

  ctx.ui.initialize()

  if ctx.dry:
    console.print("Skipping root and system checks in dry run mode")
    console.print()

  for label, value in config_items:
    console.print(f" • {label}: {value}")
  console.print()

  if profile.disk.secure_erase:
    ctx.drives = set_drives(ctx.dry)

  # Select target disk: CLI > interactive
  ctx.disk = ctx.config.disk or set_disk(profile.disk.nvme, ctx.dry)
  ctx.luks_pass = set_luks_pass()

  if ctx.drives:
    console.print(f"\n[bold yellow]WARNING:[/] {', '.join(ctx.drives)} will be securely erased.", style="bold")
  if profile.disk.dual_boot:
    console.print(f"\n[bold yellow]WARNING:[/] Windows on {ctx.disk} will be resized to the first half of the disk.", style="bold")
  else:
    console.print(f"\n[bold yellow]WARNING:[/] All data on {ctx.disk} will be erased.", style="bold")

  response = Confirm.ask("Are you sure you want to continue?", default=False)
  if not response:
    console.print("\n[bold red]Installation aborted. No changes were made to the system.[/]")
    sys.exit(0)

  console.print()
  logger.info("Target disk %s, layout %s", ctx.disk, profile.disk.layout)


def step_1_clock(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  cmd(f"timedatectl set-timezone {ctx.config.timezone}", ctx.dry, ctx.ui)
  info(f"Timezone set to {ctx.config.timezone}.", ctx.ui)
  cmd("timedatectl set-ntp true", ctx.dry, ctx.ui)
  info("NTP enabled.", ctx.ui)


def step_2_secure_erase(ctx: InstallerContext, _warnings: list[str]) -> None:
  for drive in ctx.drives:
    secure_erase(ctx, drive)


def step_3_partitioning(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  assert ctx.disk is not None
  for command in fresh_layout_commands(ctx.disk):
    cmd(command, ctx.dry, ctx.ui)

  ctx.efi_part = part_path(ctx.disk, 2)
  ctx.luks_part = part_path(ctx.disk, 3)
  info(f"Partitioning of {ctx.disk} complete.", ctx.ui)


def step_3_dual_boot_partitioning(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  ctx.efi_part, ctx.luks_part = partition_dual_boot(ctx)
  info(f"Partitioning of {ctx.disk} complete.", ctx.ui)


def step_4_encryption(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  assert ctx.luks_part is not None
  assert ctx.luks_pass is not None
  disk = ctx.profile.disk
  mapper = f"/dev/mapper/{ctx.mapper_name}"

  scmd(f"cryptsetup luksFormat {ctx.luks_part} --batch-mode -d -", ctx.luks_pass, ctx.dry, ctx.ui)
  scmd(f"cryptsetup open {ctx.luks_part} {ctx.mapper_name} -d -", ctx.luks_pass, ctx.dry, ctx.ui)
  info("Opened LUKS container.", ctx.ui)

  cmd(f"pvcreate {mapper}", ctx.dry, ctx.ui)
  cmd(f"vgcreate {ctx.volume_group} {mapper}", ctx.dry, ctx.ui)
  cmd(f"lvcreate -L {disk.swap} -n swap {ctx.volume_group}", ctx.dry, ctx.ui)
  cmd(f"lvcreate -L {disk.root} -n root {ctx.volume_group}", ctx.dry, ctx.ui)
  cmd(f"lvcreate -l 100%FREE -n home {ctx.volume_group}", ctx.dry, ctx.ui)

  # Leaves room for e2scrub snapshots
  cmd(f"lvreduce -y -L -{disk.home_reserve} {ctx.volume_group}/home", ctx.dry, ctx.ui)
  info(f"Logical volumes created (swap {disk.swap}, root {disk.root}, home rest).", ctx.ui)


def step_5_filesystems(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  assert ctx.efi_part is not None
  cmd(f"mkfs.ext4 {ctx.lv_path('root')}", ctx.dry, ctx.ui)
  cmd(f"mkfs.ext4 {ctx.lv_path('home')}", ctx.dry, ctx.ui)
  cmd(f"mkswap {ctx.lv_path('swap')}", ctx.dry, ctx.ui)

  cmd(f"mount {ctx.lv_path('root')} {TARGET}", ctx.dry, ctx.ui)
  cmd(f"mount --mkdir {ctx.lv_path('home')} {TARGET}/home", ctx.dry, ctx.ui)
  cmd(f"swapon {ctx.lv_path('swap')}", ctx.dry, ctx.ui)

  cmd(f"mkfs.fat -F32 {ctx.efi_part}", ctx.dry, ctx.ui)
  options = "-o fmask=0137,dmask=0027 " if ctx.profile.disk.efi_masks else ""
  cmd(f"mount {options}--mkdir {ctx.efi_part} {TARGET}/boot", ctx.dry, ctx.ui)
  info(f"EFI partition mounted on {TARGET}/boot.", ctx.ui)


def step_6_cache_server(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  url = load_defaults()["cache_server"]

  def cache_server(text: str) -> str:
    return add_cache_server(text, url)

  edit("/etc/pacman.conf", cache_server, ctx.dry, ctx.ui)
  info("CacheServer entries added.", ctx.ui)


def step_7_mirrors(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  args = " ".join(load_defaults()["reflector"])
  cmd(f"reflector --save /etc/pacman.d/mirrorlist {args}", ctx.dry, ctx.ui)
  cmd("pacman -Syy", ctx.dry, ctx.ui)
  info("Mirrorlist updated.", ctx.ui)


def base_packages(ctx: InstallerContext) -> list[str]:
  """Packages handed to pacstrap, including what the installer needs inside the chroot."""
  packages = [*load_packages()["base"], ctx.profile.microcode]
  if ctx.profile.disk.nvme:
    packages.append("nvme-cli")
  packages += ["python", "python-rich"]
  return packages


def step_8_bootstrap(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  cmd(f"pacstrap -K {TARGET} {' '.join(base_packages(ctx))}", ctx.dry, ctx.ui)
  info("Base and additional package installation complete.", ctx.ui)


def step_9_fstab(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  fstab = f"{TARGET}/etc/fstab"
  cmd(f"genfstab -U {TARGET} >> {fstab}", ctx.dry, ctx.ui)
  edit(fstab, use_noatime, ctx.dry, ctx.ui)
  if ctx.profile.disk.efi_masks:
    edit(fstab, enforce_efi_masks, ctx.dry, ctx.ui)
  info("fstab generated.", ctx.ui)


def step_10_handoff(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  profile = ctx.profile
  handoff = Handoff(profile=profile.source or profile.name)
  if profile.handoff:
    handoff.target_disk = ctx.disk
  if profile.disk.dual_boot:
    handoff.linux_efi_part = ctx.efi_part
    handoff.luks_part = ctx.luks_part

  save_handoff(handoff, TARGET, ctx.dry, ctx.ui)
  copy_installer(INSTALLER_DIR, ctx.dry, ctx.ui)
  info(f"Installer copied to {INSTALLER_DIR}.", ctx.ui)

  info(
    f"The base installation is complete. To continue, run 'arch-chroot {TARGET}' manually and execute "
    "'python /archsetup/install.py post-chroot' inside the chroot environment to proceed with further setup.",
    ctx.ui,
  )
