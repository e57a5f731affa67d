"""GPU driver adapter registry"""

import sys
from importlib import import_module
from typing import cast

from rich.console import Console

from archsetup.gpu.protocol import GPUProtocol

console = Console()

__all__ = ["get_gpu", "get_supported_gpus", "GPUProtocol"]


def get_gpu(vendor: str) -> GPUProtocol:
  """
  Load and return the driver module for the given GPU vendor.

  Each vendor module must implement the standard function interface.
  """
  if vendor not in get_supported_gpus():
    console.print(f"\n[prompt.invalid]Unsupported GPU vendor: {vendor}[/]")
    console.print(f"\n[prompt.invalid]Supported vendors: {', '.join(get_supported_gpus())}[/]")
    sys.exit(1)

  module = import_module(f"archsetup.gpu.{vendor}")
  # Double cast needed: ModuleType -> object -> GPUProtocol
  # Type checker can't verify ModuleType implements Protocol at import time
  module_as_object = cast(object, module)
  return cast(GPUProtocol, module_as_object)


def get_supported_gpus() -> list[str]:
  """Return list of supported GPU vendors"""
  return ["amd", "intel", "nvidia", "none"]
