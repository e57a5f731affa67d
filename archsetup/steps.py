from typing import Callable

from archsetup import post_chroot, pre_chroot
from archsetup.context import InstallerContext
from archsetup.types import Phase

Step = Callable[[InstallerContext, list[str]], None]


def get_pre_chroot_steps(ctx: InstallerContext) -> list[Step]:
  """Steps run from the live ISO, leaving out the ones the profile does not use."""
  profile = ctx.profile
  steps: list[Step] = [pre_chroot.step_0_settings, pre_chroot.step_1_clock]

  if profile.disk.secure_erase:
    steps.append(pre_chroot.step_2_secure_erase)

  if profile.disk.dual_boot:
    steps.append(pre_chroot.step_3_dual_boot_partitioning)
  else:
    steps.append(pre_chroot.step_3_partitioning)

  steps += [pre_chroot.step_4_encryption, pre_chroot.step_5_filesystems]

  if Phase.PRE_CHROOT.value in profile.cache_server:
    steps.append(pre_chroot.step_6_cache_server)

  if profile.refresh_mirrors:
    steps.append(pre_chroot.step_7_mirrors)

  steps += [pre_chroot.step_8_bootstrap, pre_chroot.step_9_fstab, pre_chroot.step_10_handoff]
  return steps


def get_post_chroot_steps(ctx: InstallerContext) -> list[Step]:
  """Steps run inside arch-chroot, leaving out the ones the profile does not use."""
  profile = ctx.profile
  steps: list[Step] = [
    post_chroot.step_0_settings,
    post_chroot.step_1_time_and_locale,
    post_chroot.step_2_host_identity,
    post_chroot.step_3_initramfs,
    post_chroot.step_4_root_password,
  ]

  if Phase.POST_CHROOT.value in profile.cache_server:
    steps.append(post_chroot.step_5_cache_server)

  steps += [
    post_chroot.step_6_bootloader,
    post_chroot.step_7_mirrors,
    post_chroot.step_8_desktop_packages,
    post_chroot.step_9_services,
    post_chroot.step_10_user,
    post_chroot.step_11_timesync,
  ]

  if profile.gpu != "none":
    steps.append(post_chroot.step_12_gpu_drivers)

  steps += [post_chroot.step_13_additional_packages, post_chroot.step_14_environment]

  if profile.firewall:
    steps.append(post_chroot.step_15_firewall)

  steps.append(post_chroot.step_16_finish)
  return steps


def get_install_steps(ctx: InstallerContext) -> list[Step]:
  if ctx.config.phase is Phase.PRE_CHROOT:
    return get_pre_chroot_steps(ctx)
  return get_post_chroot_steps(ctx)
