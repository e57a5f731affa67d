"""
Validation functions for archsetup.

This module contains all validation functions used throughout the application
for validating timezones, locales, hostnames, devices, profiles, and JSON data.
"""

import os
import re
import urllib.parse
from pathlib import Path
from typing import Any

from archsetup.types import CPUVendor, GPUVendor

# =============================================================================
# Validation Functions
# =============================================================================
# Functions that validate data and return boolean or list of issues


def validate_username(username: str) -> bool:
  max_len = 32

  if not username:
    return False
  if username[0] == "-":
    return False
  if len(username) > max_len:
    return False
  if username.isdigit():
    return False

  def _make_username_pattern() -> re.Pattern[str]:
    start_chars = "a-z_"
    body_chars = start_chars + "0-9-"
    pattern = rf"^[{start_chars}][{body_chars}]{{0,{max_len - 1}}}$"
    return re.compile(pattern)

  pattern = _make_username_pattern()
  return bool(pattern.fullmatch(username))


def validate_password(password: str) -> bool:
  return len(password.strip()) > 1


def validate_url(url: str) -> bool:
  """Validate that a URL is properly formatted."""
  if not url:
    return False

  result = urllib.parse.urlparse(url)
  return bool(result.scheme and result.netloc)


def validate_timezone(timezone: str) -> bool:
  """Validate timezone against common timezone patterns."""
  if "/" not in timezone:
    return False

  parts = timezone.split("/")
  if len(parts) != 2:
    return False

  region, city = parts
  if not region.replace("_", "").isalpha() or not city.replace("_", "").isalpha():
    return False

  return True


def validate_locale(locale: str) -> bool:
  """Validate locale format - supports various glibc locale formats."""
  if not locale:
    return False

  # Allow C/POSIX locales
  if locale in ("C", "POSIX"):
    return True

  # Basic pattern: language[_territory][.encoding][@modifier]
  # Examples: en, en_US, en_US.UTF-8, de_AT.UTF-8, de_DE.ISO-8859-1@euro
  pattern = r"^[a-z]{2,3}(_[A-Z]{2})?(\.[A-Za-z0-9_-]+)?(@[A-Za-z0-9_-]+)?$"
  return bool(re.match(pattern, locale))


def validate_keymap(keymap: str) -> bool:
  """Validate console keymap names such as 'us' or 'de-latin1-nodeadkeys'."""
  return bool(re.fullmatch(r"[A-Za-z0-9][A-Za-z0-9_.-]*", keymap))


def validate_hostname(hostname: str) -> bool:
  """Validate hostname format according to RFC 1123."""
  if not hostname or len(hostname) > 253:
    return False

  labels = hostname.split(".")

  def is_valid_label(label: str) -> bool:
    return (
      bool(label)
      and len(label) <= 63
      and label[0].isalnum()
      and label[-1].isalnum()
      and all(c.isalnum() or c == "-" for c in label)
    )

  return all(is_valid_label(label) for label in labels)


def validate_disk(disk: str, nvme_only: bool = False, must_exist: bool = True) -> bool:
  """Validate a whole-disk block device path like /dev/nvme0n1 or /dev/sda."""
  pattern = r"^/dev/nvme\d+n\d+$" if nvme_only else r"^/dev/(nvme\d+n\d+|sd[a-z]+|vd[a-z]+|mmcblk\d+)$"
  if not re.match(pattern, disk):
    return False

  return os.path.exists(disk) if must_exist else True


def validate_nvme_controller(device: str, must_exist: bool = True) -> bool:
  """Only controller devices like /dev/nvme0 are accepted, never namespaces."""
  if not re.fullmatch(r"/dev/nvme\d+", device):
    return False

  return os.path.exists(device) if must_exist else True


def validate_lvm_size(size: str) -> bool:
  """Validate an lvcreate -L size such as 32G or 512M."""
  return bool(re.fullmatch(r"\d+[KMGT]", size))


def validate_profile(source: str) -> bool:
  """Validate profile source (name, path, or URL). Returns True if valid, False if invalid."""
  if source.startswith(("http://", "https://")):
    return validate_url(source)

  if not source.startswith(("/", "./")):
    from archsetup.registry import get_embedded_profile

    if get_embedded_profile(source):
      return True

  return Path(source).exists()


def validate_profile_json(data: dict[str, object]) -> list[str]:
  """
  Validate profile JSON structure and return list of issues.

  Returns empty list if valid, list of error messages if invalid.
  """
  required_validators = [
    (lambda: isinstance(data.get("name"), str), "Profile must have a 'name' field as string"),
    (lambda: isinstance(data.get("description"), str), "Profile must have a 'description' field as string"),
    (lambda: isinstance(data.get("hostname"), str), "Profile must have a 'hostname' field as string"),
  ]

  issues = [msg for validator, msg in required_validators if not validator()]

  hostname = data.get("hostname")
  if isinstance(hostname, str) and not validate_hostname(hostname):
    issues.append(f"hostname '{hostname}' is not a valid RFC 1123 hostname")

  for section in ["config", "disk", "user", "packages"]:
    value = data.get(section, {})
    if value is not None and not isinstance(value, dict):
      issues.append(f"'{section}' field must be an object")

  if data.get("cpu", "amd") not in [vendor.value for vendor in CPUVendor]:
    issues.append("cpu must be 'amd' or 'intel'")

  if data.get("gpu", "none") not in [vendor.value for vendor in GPUVendor]:
    issues.append("gpu must be 'amd', 'intel', 'nvidia' or 'none'")

  if data.get("timesync", "timesyncd") not in ["chrony", "timesyncd"]:
    issues.append("timesync must be 'chrony' or 'timesyncd'")

  disk = data.get("disk", {})
  if isinstance(disk, dict):
    if disk.get("layout", "fresh") not in ["fresh", "dual-boot"]:
      issues.append("disk.layout must be 'fresh' or 'dual-boot'")

    for field in ["swap", "root"]:
      value = disk.get(field)
      if value is not None and not (isinstance(value, str) and validate_lvm_size(value)):
        issues.append(f"disk.{field} must be a size like '32G'")

  user = data.get("user", {})
  if isinstance(user, dict):
    name = user.get("name")
    if name is not None and not (isinstance(name, str) and validate_username(name)):
      issues.append("user.name must be a valid username")

    uid = user.get("uid")
    if uid is not None and not isinstance(uid, int):
      issues.append("user.uid must be an integer")

  packages = data.get("packages", {})
  if isinstance(packages, dict):
    for field in ["additional", "exclude"]:
      value = packages.get(field)

      if value is not None and not isinstance(value, list):
        issues.append(f"packages.{field} must be a list")

      elif isinstance(value, list) and not all(isinstance(item, str) for item in value):
        issues.append(f"packages.{field} must be a list of strings")

  return issues


def validate_defaults_json(data: Any) -> dict[str, Any]:
  """Validate and return defaults JSON data with proper typing."""
  if not isinstance(data, dict):
    raise ValueError("Defaults JSON must be an object")

  required_keys = {"timezone", "locale", "keymap", "cache_server", "reflector"}
  missing_keys = required_keys - data.keys()
  if missing_keys:
    raise KeyError(f"Missing required keys: {missing_keys}")

  if not isinstance(data["reflector"], list):
    raise ValueError("reflector field must be a list")

  return data


def validate_cli_arguments(
  timezone: str,
  locale: str,
  keymap: str,
  hostname: str | None = None,
  profile: str | None = None,
  disk: str | None = None,
  dry: bool = False,
) -> list[str]:
  """
  Validate all command line arguments and return list of error messages.

  Returns empty list if all arguments are valid, list of error messages otherwise.
  """
  # Define validators as (condition, error_message) tuples
  validators = [
    (validate_timezone(timezone), f"Invalid timezone: {timezone} (expected format: Region/City)"),
    (validate_locale(locale), f"Invalid locale: {locale} (expected format: language[_COUNTRY][.encoding][@modifier])"),
    (validate_keymap(keymap), f"Invalid keymap: {keymap}"),
  ]

  if hostname:
    validators.append((validate_hostname(hostname), f"Invalid hostname: {hostname} (must follow RFC 1123 format)"))

  if profile:
    validators.append((validate_profile(profile), f"Profile not found: {profile}"))

  if disk:
    validators.append((validate_disk(disk, must_exist=not dry), f"Invalid disk: {disk} (expected an existing whole-disk device)"))

  return [msg for valid, msg in validators if not valid]
