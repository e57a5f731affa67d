from archsetup.bootloader import boot_entry, install_bootloader, kernel_options, loader_conf
from archsetup.gpu import get_gpu, get_supported_gpus
from archsetup.types import Phase

from conftest import make_context


def test_loader_conf():
  assert loader_conf() == ["default  arch.conf", "timeout  4", "console-mode max", "editor   no"]


def test_kernel_options_for_amd_notebook():
  options = kernel_options("LUKS-UUID", "SWAP-UUID", "cryptlvm", [], quiet=False)
  assert options == (
    "rd.luks.name=LUKS-UUID=cryptlvm root=/dev/vg/root resume=UUID=SWAP-UUID "
    "rd.luks.options=timeout=0 rootflags=x-systemd.device-timeout=0 "
    "vt.global_cursor_default=0 ipv6.disable=1"
  )


def test_kernel_options_for_nvidia_desktop():
  options = kernel_options("L", "S", "cryptlvm", get_gpu("nvidia").kernel_params(), quiet=True)
  assert options.endswith("vt.global_cursor_default=0 nvidia_drm.modeset=1 nvidia_drm.fbdev=1 ipv6.disable=1 quiet")


def test_boot_entry():
  assert boot_entry("Arch Linux", "amd-ucode", "initramfs-linux.img", "root=/dev/vg/root") == [
    "title   Arch Linux",
    "linux   /vmlinuz-linux",
    "initrd  /amd-ucode.img",
    "initrd  /initramfs-linux.img",
    "options root=/dev/vg/root",
  ]


def test_install_bootloader_dry_run():
  ctx = make_context("pc", Phase.POST_CHROOT)
  ctx.luks_part = "/dev/nvme0n1p3"
  install_bootloader(ctx)

  assert ctx.ui.commands[0] == "bootctl install"
  assert "Writing to /boot/loader/loader.conf:" in ctx.ui.commands
  assert "Writing to /boot/loader/entries/arch.conf:" in ctx.ui.commands
  assert "Writing to /boot/loader/entries/arch-fallback.conf:" in ctx.ui.commands
  assert "Writing to /etc/pacman.d/hooks/95-systemd-boot.hook:" in ctx.ui.commands

  text = ctx.ui.text
  assert "initrd  /amd-ucode.img" in text
  assert "initrd  /initramfs-linux-fallback.img" in text
  assert "rd.luks.name=DRY-RUN-LUKS-UUID=cryptlvm" in text
  assert "resume=UUID=DRY-RUN-SWAP-UUID" in text
  assert "nvidia_drm.modeset=1" in text
  assert "Exec = /usr/bin/systemctl restart systemd-boot-update.service" in text


def test_gpu_adapters():
  assert get_supported_gpus() == ["amd", "intel", "nvidia", "none"]
  assert get_gpu("amd").initramfs_modules() == ["amdgpu"]
  assert get_gpu("intel").initramfs_modules() == ["i915"]
  assert get_gpu("none").packages() == []

  nvidia = get_gpu("nvidia")
  assert nvidia.initramfs_modules() == ["nvidia", "nvidia_modeset", "nvidia_uvm", "nvidia_drm"]
  assert nvidia.services() == ["nvidia-suspend.service", "nvidia-hibernate.service"]
  paths = [path for path, _lines in nvidia.files()]
  assert paths == ["/etc/pacman.d/hooks/nvidia.hook", "/etc/modprobe.d/nvidia-power-management.conf"]


def test_unknown_gpu_exits():
  import pytest

  with pytest.raises(SystemExit):
    get_gpu("matrox")
