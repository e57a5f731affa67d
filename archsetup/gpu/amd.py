"""AMD graphics: Mesa with the amdgpu module loaded early"""


def packages() -> list[str]:
  return ["mesa"]


def initramfs_modules() -> list[str]:
  return ["amdgpu"]


def kernel_params() -> list[str]:
  return []


def services() -> list[str]:
  return []


def files() -> list[tuple[str, list[str]]]:
  return []
