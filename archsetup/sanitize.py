"""NVMe secure erase: format, crypto erase and block erase of whole controllers."""

import logging
import re
import sys
import time

from archsetup.context import InstallerContext
from archsetup.tui import TUI
from archsetup.utils import cmd, info, probe

logger = logging.getLogger(__name__)

SANITIZE_DONE_PROGRESS = "65535"
SANITIZE_DONE_STATUS = "0x101"
POLL_INTERVAL = 5.0


def parse_sanitize_log(output: str) -> tuple[str | None, str | None]:
  """Return the last words of the 'Sanitize Progress' and 'Sanitize Status' lines."""
  sprog = sstat = None
  for line in output.splitlines():
    if re.search(r"Sanitize Progress", line):
      sprog = line.split()[-1]
    elif re.search(r"Sanitize Status", line):
      sstat = line.split()[-1]
  return sprog, sstat


def wait_for_sanitize(device: str, ui: TUI, interval: float = POLL_INTERVAL) -> None:
  while True:
    sprog, sstat = parse_sanitize_log(probe(f"nvme sanitize-log {device} 2>/dev/null", check=False))

    if sprog == SANITIZE_DONE_PROGRESS and sstat == SANITIZE_DONE_STATUS:
      logger.info("Sanitize of %s completed (SPROG=%s, SSTAT=%s)", device, sprog, sstat)
      ui.print(f"[bold green][INFO][/] Sanitize process for {device} completed.")
      ui.print(f"[bold green][INFO][/] Final Sanitize Status: SPROG={sprog}, SSTAT={sstat}")
      return

    if not sprog or not sstat:
      logger.error("Sanitize log of %s is missing progress or status", device)
      ui.print("[bold red][ERROR] Sanitize log not providing expected values. Aborting.[/]")
      sys.exit(1)

    ui.print(f"[bold green][INFO][/] Waiting for sanitize process to complete on {device}... (SPROG={sprog}, SSTAT={sstat})")
    time.sleep(interval)


def secure_erase(ctx: InstallerContext, device: str) -> None:
  assert ctx.ui is not None
  format_command = f"nvme format {device} -s 2 -n 1 --force"

  cmd(format_command, ctx.dry, ctx.ui)
  cmd(f"nvme sanitize {device} -a start-crypto-erase", ctx.dry, ctx.ui)
  if not ctx.dry:
    wait_for_sanitize(device, ctx.ui)

  cmd(f"nvme sanitize {device} -a start-block-erase", ctx.dry, ctx.ui)
  if not ctx.dry:
    wait_for_sanitize(device, ctx.ui)

  cmd(format_command, ctx.dry, ctx.ui)
  info(f"Secure erase of {device} finished.", ctx.ui)
