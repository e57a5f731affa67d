"""NVIDIA proprietary driver with early KMS and video memory preservation across suspend"""

from textwrap import dedent


def packages() -> list[str]:
  return ["nvidia"]


def initramfs_modules() -> list[str]:
  return ["nvidia", "nvidia_modeset", "nvidia_uvm", "nvidia_drm"]


def kernel_params() -> list[str]:
  return ["nvidia_drm.modeset=1", "nvidia_drm.fbdev=1"]


def services() -> list[str]:
  return ["nvidia-suspend.service", "nvidia-hibernate.service"]


# Rebuilds the initramfs whenever the driver or the kernel changes
_initcpio_hook = dedent("""\
  [Trigger]
  Operation=Install
  Operation=Upgrade
  Operation=Remove
  Type=Package
  Target=nvidia
  Target=linux

  [Action]
  Description=Updating NVIDIA module in initcpio
  Depends=mkinitcpio
  When=PostTransaction
  NeedsTargets
  Exec=/bin/sh -c 'while read -r trg; do case $trg in linux*) exit 0; esac; done; /usr/bin/mkinitcpio -P'
""")


def files() -> list[tuple[str, list[str]]]:
  return [
    ("/etc/pacman.d/hooks/nvidia.hook", _initcpio_hook.splitlines()),
    (
      "/etc/modprobe.d/nvidia-power-management.conf",
      ["options nvidia NVreg_PreserveVideoMemoryAllocations=1 NVreg_TemporaryFilePath=/var/tmp"],
    ),
  ]
