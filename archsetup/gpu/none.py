"""No dedicated GPU handling, firmware framebuffer only"""


def packages() -> list[str]:
  return []


def initramfs_modules() -> list[str]:
  return []


def kernel_params() -> list[str]:
  return []


def services() -> list[str]:
  return []


def files() -> list[tuple[str, list[str]]]:
  return []
