"""Intel graphics: Mesa with the i915 module loaded early"""


def packages() -> list[str]:
  return ["mesa"]


def initramfs_modules() -> list[str]:
  return ["i915"]


def kernel_params() -> list[str]:
  return []


def services() -> list[str]:
  return []


def files() -> list[tuple[str, list[str]]]:
  return []
