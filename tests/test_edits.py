from archsetup.edits import (
  add_cache_server,
  enable_locales,
  enable_mdns,
  enable_reflector_country,
  enable_wheel_sudo,
  enforce_efi_masks,
  permit_root_login,
  set_array,
  use_noatime,
)

CACHE = "http://192.168.112.103:9129/repo/archlinux/$repo/os/$arch"

PACMAN_CONF = """\
[options]
Architecture = auto

[core]
Include = /etc/pacman.d/mirrorlist

[extra]
Include = /etc/pacman.d/mirrorlist

#[multilib]
#Include = /etc/pacman.d/mirrorlist
"""


def test_cache_server_follows_include_of_core_and_extra():
  lines = add_cache_server(PACMAN_CONF, CACHE).splitlines()

  core = lines.index("[core]")
  extra = lines.index("[extra]")
  assert lines[core + 2] == f"CacheServer = {CACHE}"
  assert lines[extra + 2] == f"CacheServer = {CACHE}"
  assert sum(line.startswith("CacheServer") for line in lines) == 2


def test_cache_server_is_added_once():
  once = add_cache_server(PACMAN_CONF, CACHE)
  assert add_cache_server(once, CACHE) == once
  assert once.endswith("\n")


def test_cache_server_leaves_other_sections_alone():
  result = add_cache_server(PACMAN_CONF, CACHE, sections=("core",))
  assert result.count("CacheServer") == 1


def test_enable_locales_uncomments_requested_entries_only():
  text = "#en_GB.UTF-8 UTF-8\n#en_US.UTF-8 UTF-8\n#en_US ISO-8859-1\n#  de_AT.UTF-8 UTF-8\n"
  result = enable_locales(text, ["en_US.UTF-8", "de_AT.UTF-8"])
  assert result.splitlines() == [
    "#en_GB.UTF-8 UTF-8",
    "en_US.UTF-8 UTF-8",
    "#en_US ISO-8859-1",
    "de_AT.UTF-8 UTF-8",
  ]


def test_set_array_replaces_hooks_line():
  text = "MODULES=()\nHOOKS=(base udev autodetect)\nCOMPRESSION=zstd\n"
  result = set_array(text, "HOOKS", ["base", "systemd", "lvm2"])
  assert "HOOKS=(base systemd lvm2)" in result
  assert "MODULES=()" in result
  assert "COMPRESSION=zstd" in result


def test_set_array_does_not_touch_comments():
  text = "#HOOKS=(base udev)\nHOOKS=(base udev)\n"
  assert set_array(text, "HOOKS", ["base"]) == "#HOOKS=(base udev)\nHOOKS=(base)\n"


def test_use_noatime():
  line = "UUID=abc / ext4 rw,relatime 0 1"
  assert use_noatime(line) == "UUID=abc / ext4 rw,noatime 0 1"


def test_efi_masks_only_change_the_boot_mount():
  fstab = (
    "UUID=1 /boot vfat rw,noatime,fmask=0022,dmask=0022,codepage=437 0 2\n"
    "UUID=2 /mnt/usb vfat rw,fmask=0022,dmask=0022 0 2\n"
  )
  lines = enforce_efi_masks(fstab).splitlines()
  assert "fmask=0137,dmask=0027" in lines[0]
  assert "fmask=0022,dmask=0022" in lines[1]


def test_permit_root_login():
  text = "#PermitRootLogin prohibit-password\n#MaxAuthTries 6\n"
  assert permit_root_login(text) == "PermitRootLogin yes\n#MaxAuthTries 6\n"


def test_enable_reflector_country():
  text = "--save /etc/pacman.d/mirrorlist\n# --country France,Germany\n"
  assert enable_reflector_country(text).splitlines()[1] == "--country France,Germany"


def test_enable_mdns_inserts_before_resolve():
  text = "passwd: files systemd\nhosts: mymachines resolve [!UNAVAIL=return] files myhostname dns\n"
  result = enable_mdns(text)
  assert "hosts: mymachines mdns_minimal [NOTFOUND=return] resolve [!UNAVAIL=return] files" in result
  assert result.startswith("passwd: files systemd\n")


def test_enable_wheel_sudo_keeps_nopasswd_commented():
  text = "## Uncomment to allow\n# %wheel ALL=(ALL:ALL) ALL\n\n# %wheel ALL=(ALL:ALL) NOPASSWD: ALL\n"
  result = enable_wheel_sudo(text)
  assert result.splitlines() == [
    "## Uncomment to allow",
    "%wheel ALL=(ALL:ALL) ALL",
    "",
    "# %wheel ALL=(ALL:ALL) NOPASSWD: ALL",
  ]
