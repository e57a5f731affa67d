from typing import Protocol


class GPUProtocol(Protocol):
  """Functions every GPU vendor module provides."""

  def packages(self) -> list[str]: ...

  def initramfs_modules(self) -> list[str]: ...

  def kernel_params(self) -> list[str]: ...

  def services(self) -> list[str]: ...

  def files(self) -> list[tuple[str, list[str]]]: ...
