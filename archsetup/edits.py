"""
In-place edits of system configuration files.

Each function takes the current file content and returns the edited content,
so they can be applied with utils.edit() and tested without touching /etc.
"""

import re


def add_cache_server(text: str, url: str, sections: tuple[str, ...] = ("core", "extra")) -> str:
  """Insert a CacheServer line after the first Include of each given repository section."""
  entry = f"CacheServer = {url}"
  lines = text.splitlines()
  result: list[str] = []
  current: str | None = None
  pending: set[str] = set(sections)

  for i, line in enumerate(lines):
    result.append(line)
    header = re.fullmatch(r"\[([^\]]+)\]", line.strip())
    if header:
      current = header.group(1)
      continue

    if current in pending and line.startswith("Include"):
      pending.discard(current)
      following = lines[i + 1] if i + 1 < len(lines) else ""
      if following.strip() != entry:
        result.append(entry)

  return "\n".join(result) + ("\n" if text.endswith("\n") else "")


def enable_locales(text: str, locales: list[str]) -> str:
  """Uncomment the locale.gen entries for the given locales."""
  for locale in locales:
    charset = locale.split(".", 1)[1] if "." in locale else "UTF-8"
    entry = f"{locale} {charset}"
    text = re.sub(rf"^#[ \t]*({re.escape(entry)})", r"\1", text, flags=re.MULTILINE)
  return text


def set_array(text: str, key: str, values: list[str]) -> str:
  """Replace a mkinitcpio.conf style KEY=(...) assignment."""
  return re.sub(rf"^{re.escape(key)}=.*$", f"{key}=({' '.join(values)})", text, flags=re.MULTILINE)


def use_noatime(text: str) -> str:
  return text.replace("relatime", "noatime")


def enforce_efi_masks(text: str, fmask: str = "0137", dmask: str = "0027", mountpoint: str = "/boot") -> str:
  """Tighten the vfat permission masks of the EFI mount."""
  lines = []
  for line in text.splitlines():
    if mountpoint in line:
      line = re.sub(r"fmask=\d{4}", f"fmask={fmask}", line)
      line = re.sub(r"dmask=\d{4}", f"dmask={dmask}", line)
    lines.append(line)
  return "\n".join(lines) + ("\n" if text.endswith("\n") else "")


def permit_root_login(text: str) -> str:
  return re.sub(r"^#PermitRootLogin.*$", "PermitRootLogin yes", text, flags=re.MULTILINE)


def enable_reflector_country(text: str) -> str:
  return re.sub(r"^#[ \t]*--country", "--country", text, flags=re.MULTILINE)


def enable_mdns(text: str) -> str:
  """Resolve .local names through nss-mdns before systemd-resolved."""
  return re.sub(
    r"^(hosts:.*?)\bresolve\b",
    r"\1mdns_minimal [NOTFOUND=return] resolve",
    text,
    flags=re.MULTILINE,
  )


def enable_wheel_sudo(text: str) -> str:
  return re.sub(
    r"^#[ \t]*%wheel ALL=\(ALL:ALL\) ALL[ \t]*$",
    "%wheel ALL=(ALL:ALL) ALL",
    text,
    flags=re.MULTILINE,
  )
