"""systemd-boot configuration for an LVM-on-LUKS root with hibernation to the swap volume."""

from textwrap import dedent

from archsetup.context import InstallerContext
from archsetup.gpu import get_gpu
from archsetup.utils import cmd, info, probe, write


def loader_conf() -> list[str]:
  return [
    "default  arch.conf",
    "timeout  4",
    "console-mode max",
    "editor   no",
  ]


def kernel_options(luks_uuid: str, swap_uuid: str, mapper_name: str, gpu_params: list[str], quiet: bool) -> str:
  options = [
    f"rd.luks.name={luks_uuid}={mapper_name}",
    "root=/dev/vg/root",
    f"resume=UUID={swap_uuid}",
    "rd.luks.options=timeout=0",
    "rootflags=x-systemd.device-timeout=0",
    "vt.global_cursor_default=0",
    *gpu_params,
    "ipv6.disable=1",
  ]
  if quiet:
    options.append("quiet")
  return " ".join(options)


def boot_entry(title: str, microcode: str, initramfs: str, options: str) -> list[str]:
  return [
    f"title   {title}",
    "linux   /vmlinuz-linux",
    f"initrd  /{microcode}.img",
    f"initrd  /{initramfs}",
    f"options {options}",
  ]


def _update_hook() -> list[str]:
  return dedent("""\
    [Trigger]
    Type = Package
    Operation = Upgrade
    Target = systemd

    [Action]
    Description = Gracefully upgrading systemd-boot...
    When = PostTransaction
    Exec = /usr/bin/systemctl restart systemd-boot-update.service
  """).splitlines()


def install_bootloader(ctx: InstallerContext) -> None:
  assert ctx.ui is not None
  assert ctx.luks_part is not None
  profile = ctx.profile

  cmd("bootctl install", ctx.dry, ctx.ui)

  swap_device = f"/dev/mapper/{ctx.volume_group}-swap"
  if ctx.dry:
    luks_uuid, swap_uuid = "DRY-RUN-LUKS-UUID", "DRY-RUN-SWAP-UUID"
  else:
    luks_uuid = probe(f"blkid -s UUID -o value {ctx.luks_part}")
    swap_uuid = probe(f"blkid -s UUID -o value {swap_device}")

  info(f"UUID of LUKS partition: {luks_uuid}", ctx.ui)
  info(f"UUID of swap partition: {swap_uuid}", ctx.ui)

  options = kernel_options(luks_uuid, swap_uuid, ctx.mapper_name, get_gpu(profile.gpu).kernel_params(), profile.quiet)

  write(loader_conf(), f"{ctx.target}/boot/loader/loader.conf", ctx.dry, ctx.ui)
  write(
    boot_entry("Arch Linux", profile.microcode, "initramfs-linux.img", options),
    f"{ctx.target}/boot/loader/entries/arch.conf",
    ctx.dry,
    ctx.ui,
  )
  write(
    boot_entry("Arch Linux (fallback initramfs)", profile.microcode, "initramfs-linux-fallback.img", options),
    f"{ctx.target}/boot/loader/entries/arch-fallback.conf",
    ctx.dry,
    ctx.ui,
  )
  info("Bootloader installed and configured.", ctx.ui)

  write(_update_hook(), f"{ctx.target}/etc/pacman.d/hooks/95-systemd-boot.hook", ctx.dry, ctx.ui)
  info("Pacman hook for systemd-boot created.", ctx.ui)
