"""
Type definitions for archsetup.

This module contains all custom type definitions used throughout the application.
"""

from typing import TypedDict
from enum import Enum
from dataclasses import dataclass


class DefaultsConfig(TypedDict):
  """Configuration defaults shared by every profile."""

  timezone: str
  locale: str
  keymap: str
  cache_server: str
  reflector: list[str]


class PackagesConfig(TypedDict):
  """Package lists installed at the different stages."""

  base: list[str]
  desktop: list[str]
  additional: list[str]


class ServicesConfig(TypedDict):
  """Services toggled while configuring the new system."""

  enable: list[str]
  disable: list[str]


class CPUVendor(Enum):
  """Enumeration of CPU vendors, used to pick the microcode image."""

  AMD = "amd"
  INTEL = "intel"


class GPUVendor(Enum):
  """Enumeration of GPU vendors."""

  INTEL = "intel"
  AMD = "amd"
  NVIDIA = "nvidia"
  NONE = "none"


class Phase(Enum):
  """Installation phases, one per run of the installer."""

  PRE_CHROOT = "pre-chroot"
  POST_CHROOT = "post-chroot"


@dataclass
class ContextConfig:
  """Typed configuration object with all command line arguments."""

  phase: Phase
  dry: bool
  timezone: str
  keymap: str
  locale: str
  hostname: str | None = None
  profile: str | None = None
  disk: str | None = None
  handoff_dir: str | None = None
