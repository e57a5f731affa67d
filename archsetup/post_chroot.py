import logging

from rich.console import Console

from archsetup.bootloader import install_bootloader
from archsetup.context import InstallerContext
from archsetup.disks import part_path
from archsetup.edits import (
  add_cache_server,
  enable_locales,
  enable_mdns,
  enable_reflector_country,
  enable_wheel_sudo,
  permit_root_login,
  set_array,
)
from archsetup.gpu import get_gpu
from archsetup.handoff import load_handoff
from archsetup.utils import (
  append,
  ask_disk_path,
  cmd,
  edit,
  info,
  load_defaults,
  load_packages,
  load_services,
  scmd,
  set_password,
  write,
)

console = Console()
logger = logging.getLogger(__name__)

HOOKS = ["base", "systemd", "autodetect", "microcode", "modconf", "keyboard", "sd-vconsole", "block", "sd-encrypt", "lvm2", "filesystems", "fsck"]


def initramfs_hooks(kms: bool) -> list[str]:
  """mkinitcpio HOOKS for an LVM-on-LUKS root unlocked by systemd."""
  if not kms:
    return list(HOOKS)
  hooks = list(HOOKS)
  hooks.insert(hooks.index("keyboard"), "kms")
  return hooks


def pacman_install(packages: list[str], ctx: InstallerContext) -> None:
  assert ctx.ui is not None
  if packages:
    cmd(f"pacman -S --noconfirm --needed {' '.join(packages)}", ctx.dry, ctx.ui)


def step_0_settings(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  profile = ctx.profile
  handoff = load_handoff(ctx.config.handoff_dir or "/")

  ctx.ui.initialize()

  if ctx.dry:
    console.print("Skipping root and system checks in dry run mode")
    console.print()

  # Select target disk: CLI > handoff file > interactive
  if ctx.config.disk or handoff.target_disk:
    ctx.disk = ctx.config.disk or handoff.target_disk
  else:
    console.print("No target_disk.txt found, asking for the disk instead.")
    ctx.disk = ask_disk_path(profile.disk.nvme, ctx.dry)

  assert ctx.disk is not None
  ctx.efi_part = handoff.linux_efi_part or part_path(ctx.disk, 2)
  ctx.luks_part = handoff.luks_part or part_path(ctx.disk, 3)

  config_items = [
    ("Profile", f"{profile.name} ({profile.description})"),
    ("Hostname", ctx.host),
    ("Target disk", ctx.disk),
    ("LUKS partition", ctx.luks_part),
    ("User", profile.user.name),
    ("Keymap", ctx.config.keymap),
    ("Locale", ctx.config.locale),
    ("Timezone", ctx.config.timezone),
  ]

  for label, value in config_items:
    console.print(f" • {label}: {value}")
  console.print()

  ctx.root_pass = set_password("root")
  ctx.user_pass = set_password(profile.user.name)
  console.print()


def step_1_time_and_locale(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  cmd(f"ln -sf /usr/share/zoneinfo/{ctx.config.timezone} /etc/localtime", ctx.dry, ctx.ui)
  cmd("hwclock --systohc", ctx.dry, ctx.ui)
  info("Timezone and hardware clock set.", ctx.ui)

  locales = [ctx.config.locale, *(loc for loc in ctx.profile.config.extra_locales if loc != ctx.config.locale)]

  def locale_gen(text: str) -> str:
    return enable_locales(text, locales)

  edit("/etc/locale.gen", locale_gen, ctx.dry, ctx.ui)
  cmd("locale-gen", ctx.dry, ctx.ui)
  write([f"LANG={ctx.config.locale}"], "/etc/locale.conf", ctx.dry, ctx.ui)
  write([f"KEYMAP={ctx.config.keymap}"], "/etc/vconsole.conf", ctx.dry, ctx.ui)
  info(f"Locales generated: {', '.join(locales)}.", ctx.ui)


def step_2_host_identity(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  write([ctx.host], "/etc/hostname", ctx.dry, ctx.ui)
  hosts = [
    "127.0.0.1       localhost",
    "::1             localhost",
    f"127.0.1.1       {ctx.host}",
  ]
  append(hosts, "/etc/hosts", ctx.dry, ctx.ui)
  info(f"Hostname set to {ctx.host}.", ctx.ui)


def step_3_initramfs(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  hooks = initramfs_hooks(ctx.profile.kms_hook)

  def mkinitcpio_hooks(text: str) -> str:
    return set_array(text, "HOOKS", hooks)

  edit("/etc/mkinitcpio.conf", mkinitcpio_hooks, ctx.dry, ctx.ui)
  cmd("mkinitcpio -P", ctx.dry, ctx.ui)
  info("Initramfs generated.", ctx.ui)


def step_4_root_password(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  assert ctx.root_pass is not None
  scmd("chpasswd", f"root:{ctx.root_pass}\n", ctx.dry, ctx.ui)
  info("Root password set.", ctx.ui)


def step_5_cache_server(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  url = load_defaults()["cache_server"]

  def cache_server(text: str) -> str:
    return add_cache_server(text, url)

  edit("/etc/pacman.conf", cache_server, ctx.dry, ctx.ui)
  info("CacheServer entries added.", ctx.ui)


def step_6_bootloader(ctx: InstallerContext, _warnings: list[str]) -> None:
  install_bootloader(ctx)


def step_7_mirrors(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  args = " ".join(load_defaults()["reflector"])
  cmd(f"reflector --save /etc/pacman.d/mirrorlist {args}", ctx.dry, ctx.ui)
  info("Mirrorlist updated.", ctx.ui)


def desktop_packages(ctx: InstallerContext) -> list[str]:
  packages = load_packages()["desktop"]
  if ctx.profile.timesync == "chrony":
    packages.append("chrony")
  return [pkg for pkg in packages if pkg not in ctx.profile.packages.exclude]


def step_8_desktop_packages(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  pacman_install(desktop_packages(ctx), ctx)
  info("Essential packages installed.", ctx.ui)


def step_9_services(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  services = load_services()

  edit("/etc/ssh/sshd_config", permit_root_login, ctx.dry, ctx.ui)
  edit("/etc/xdg/reflector/reflector.conf", enable_reflector_country, ctx.dry, ctx.ui)
  edit("/etc/nsswitch.conf", enable_mdns, ctx.dry, ctx.ui)

  for service in services["enable"]:
    cmd(f"systemctl enable {service}", ctx.dry, ctx.ui)
  for service in services["disable"]:
    cmd(f"systemctl disable {service}", ctx.dry, ctx.ui)
  info("Services configured.", ctx.ui)


def step_10_user(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  assert ctx.user_pass is not None
  user = ctx.profile.user

  uid = f" -u {user.uid}" if user.uid is not None else ""
  cmd(f"useradd -m -g users -s {user.shell}{uid} {user.name}", ctx.dry, ctx.ui)
  scmd("chpasswd", f"{user.name}:{ctx.user_pass}\n", ctx.dry, ctx.ui)
  edit("/etc/sudoers", enable_wheel_sudo, ctx.dry, ctx.ui)

  for group in user.groups:
    cmd(f"gpasswd -a {user.name} {group}", ctx.dry, ctx.ui)
  info(f"User '{user.name}' created and configured.", ctx.ui)


def step_11_timesync(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  if ctx.profile.timesync == "chrony":
    cmd("systemctl disable systemd-timesyncd.service", ctx.dry, ctx.ui)
    cmd("systemctl enable chronyd.service", ctx.dry, ctx.ui)
  else:
    cmd("systemctl enable systemd-timesyncd.service", ctx.dry, ctx.ui)
  info("Time synchronization enabled.", ctx.ui)


def step_12_gpu_drivers(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  gpu = get_gpu(ctx.profile.gpu)
  pacman_install(gpu.packages(), ctx)

  for path, lines in gpu.files():
    write(lines, path, ctx.dry, ctx.ui)

  modules = gpu.initramfs_modules()
  if modules:

    def mkinitcpio_modules(text: str) -> str:
      return set_array(text, "MODULES", modules)

    edit("/etc/mkinitcpio.conf", mkinitcpio_modules, ctx.dry, ctx.ui)
    cmd("mkinitcpio -P", ctx.dry, ctx.ui)

  for service in gpu.services():
    cmd(f"systemctl enable {service}", ctx.dry, ctx.ui)
  info(f"{ctx.profile.gpu.upper()} graphics drivers installed and configured.", ctx.ui)


def step_13_additional_packages(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  packages = [*load_packages()["additional"], *ctx.profile.packages.additional]
  pacman_install([pkg for pkg in packages if pkg not in ctx.profile.packages.exclude], ctx)
  info("Additional packages installed.", ctx.ui)


def step_14_environment(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  append(["XDG_CONFIG_HOME   DEFAULT=@{HOME}/.config"], "/etc/security/pam_env.conf", ctx.dry, ctx.ui)
  info("Environment variables set.", ctx.ui)


def step_15_firewall(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  cmd("systemctl enable firewalld.service", ctx.dry, ctx.ui)
  info("Firewalld service enabled.", ctx.ui)


def step_16_finish(ctx: InstallerContext, _warnings: list[str]) -> None:
  assert ctx.ui is not None
  for command in ctx.profile.post_install_commands:
    cmd(command, ctx.dry, ctx.ui)

  info(
    "Setup complete. To exit the chroot environment, type 'exit', and then reboot the system by typing 'reboot'.",
    ctx.ui,
  )
