"""
Embedded machine profile registry.

Every machine this installer knows about is stored here as a Python
constant, so the installer can be copied into the new system and run again
inside the chroot without any external files. Profiles are keyed by name.
"""

from typing import Final

_MSS_GROUPS: Final[list[str]] = ["wheel", "audio", "video", "games", "power"]

PROFILES: Final[dict[str, dict[str, object]]] = {
  "nb-matthias": {
    "name": "NB-Matthias",
    "description": "AMD notebook, LVM on LUKS, KDE Plasma",
    "hostname": "NB-Matthias",
    "cpu": "amd",
    "gpu": "amd",
    "disk": {"layout": "fresh", "nvme": True, "swap": "32G", "root": "512G"},
    "user": {"name": "mss", "shell": "/bin/zsh", "groups": _MSS_GROUPS},
    "cache_server": ["pre-chroot"],
    "timesync": "chrony",
    "kms_hook": True,
  },
  "nb-nee": {
    "name": "NB-Nicola",
    "description": "Intel notebook, LVM on LUKS, KDE Plasma",
    "hostname": "NB-Nicola",
    "cpu": "intel",
    "gpu": "intel",
    "disk": {"layout": "fresh", "nvme": True, "swap": "32G", "root": "512G"},
    "user": {"name": "nee", "uid": 1001, "shell": "/bin/zsh", "groups": _MSS_GROUPS},
    "handoff": False,
    "timesync": "chrony",
    "kms_hook": True,
  },
  "pc": {
    "name": "PC-Matthias",
    "description": "AMD desktop with NVIDIA graphics, NVMe secure erase, LVM on LUKS",
    "hostname": "PC-Matthias",
    "cpu": "amd",
    "gpu": "nvidia",
    "disk": {"layout": "fresh", "nvme": True, "swap": "256G", "root": "512G", "secure_erase": True},
    "user": {"name": "mss", "shell": "/bin/zsh", "groups": _MSS_GROUPS},
    "cache_server": ["pre-chroot", "post-chroot"],
    "timesync": "timesyncd",
    "firewall": True,
    "quiet": True,
  },
  "ws-pc": {
    "name": "WS-PC",
    "description": "Intel workstation on SATA, restrictive EFI permissions",
    "hostname": "WS-PC",
    "cpu": "intel",
    "gpu": "intel",
    "disk": {"layout": "fresh", "nvme": False, "swap": "32G", "root": "512G", "efi_masks": True},
    "user": {"name": "mss", "shell": "/bin/zsh", "groups": _MSS_GROUPS},
    "cache_server": ["pre-chroot"],
    "refresh_mirrors": True,
    "timesync": "chrony",
    "kms_hook": True,
  },
  "nb-ws-mss": {
    "name": "NB-WS-MSS",
    "description": "AMD notebook dual-booting Windows on the first half of the disk",
    "hostname": "NB-WS-MSS",
    "cpu": "amd",
    "gpu": "amd",
    "disk": {"layout": "dual-boot", "nvme": True, "swap": "32G", "root": "512G"},
    "user": {"name": "mss", "shell": "/bin/zsh", "groups": _MSS_GROUPS},
    "cache_server": ["pre-chroot"],
    "refresh_mirrors": True,
    "timesync": "chrony",
    "kms_hook": True,
  },
}


def get_embedded_profile(profile_name: str) -> dict[str, object] | None:
  """
  Get an embedded profile by name.

  Args:
      profile_name: Profile name (e.g., 'pc', 'nb-ws-mss')

  Returns:
      A copy of the profile data, or None if not found
  """
  profile_data = PROFILES.get(profile_name)
  if profile_data is not None:
    return dict(profile_data)
  return None


def list_profiles() -> list[str]:
  return sorted(PROFILES.keys())
