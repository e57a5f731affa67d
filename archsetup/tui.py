import shutil
import sys
from collections import deque

from rich import box
from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

console = Console()

# Prefix per step kind, unknown steps get "- "
STEP_PREFIXES = {
  "Settings": "* ",
  "Clock": "~ ",
  "Time And Locale": "~ ",
  "Timesync": "~ ",
  "Secure Erase": "! ",
  "Partitioning": "# ",
  "Dual Boot Partitioning": "# ",
  "Encryption": "# ",
  "Filesystems": "# ",
  "Cache Server": "^ ",
  "Mirrors": "^ ",
  "Bootstrap": "^ ",
  "Desktop Packages": "^ ",
  "Gpu Drivers": "^ ",
  "Additional Packages": "^ ",
  "Fstab": "@ ",
  "Initramfs": "@ ",
  "Bootloader": "@ ",
  "Handoff": "> ",
  "Finish": "~ ",
}

PHASE_COLORS = {
  "pre-chroot": {"text": "bold blue", "border": "blue"},
  "post-chroot": {"text": "bold cyan", "border": "cyan"},
}

FAILED_COLORS = {"text": "bold red", "border": "red"}

# Output kept for redraws; older lines have already scrolled off screen
OUTPUT_HISTORY = 500


class TUI:
  """
  Live status panel above a scrolling command log.

  Without a terminal (pipes, tests, serial consoles) every status line and
  message is printed plainly instead.
  """

  def __init__(self, dry_mode: bool = False, phase: str = "pre-chroot", profile: str = ""):
    self.enabled: bool = sys.stdout.isatty()
    self.initialized: bool = False
    self.live: Live | None = None
    self.layout: Layout | None = None
    self.output_lines: deque[str] = deque(maxlen=OUTPUT_HISTORY)
    self.status_text: str = ""
    self.dry_mode: bool = dry_mode
    self.phase: str = phase
    self.profile: str = profile
    self.colors = PHASE_COLORS.get(phase, {"text": "bold yellow", "border": "yellow"})

  @property
  def title(self) -> str:
    parts = ["archsetup", self.phase]
    if self.profile:
      parts.append(self.profile)
    return " · ".join(parts)

  def initialize(self) -> None:
    if self.enabled:
      self.initialized = True

  def _status_panel(self) -> Panel:
    return Panel(
      Text(self.status_text, style=self.colors["text"]),
      border_style=self.colors["border"],
      padding=(0, 1),
      expand=False,
      box=box.SQUARE,
      title=self.title,
      title_align="left",
      subtitle="DRY RUN" if self.dry_mode else None,
      subtitle_align="right",
    )

  def _start_live(self) -> None:
    layout = Layout()
    layout.split_column(
      Layout(name="status", size=3),
      Layout(name="output", ratio=1),
    )
    layout["output"].update("")
    self.layout = layout
    self.live = Live(layout, console=console, refresh_per_second=10, screen=False)
    self.live.start()

  def _redraw_status(self) -> None:
    if self.layout is not None:
      self.layout["status"].update(self._status_panel())

  def update_status(self, message: str, step_name: str = "") -> None:
    if not self.enabled:
      console.print(f"[{self.colors['text']}]{message}[/]")
      return

    if not self.initialized:
      return

    self.status_text = f"{STEP_PREFIXES.get(step_name, '- ')}{message}"
    if self.live is None:
      self._start_live()
    self._redraw_status()

  def print(self, message: str) -> None:
    """Append to the output area while the panel is live, print to the console otherwise."""
    if not (self.live and self.layout):
      console.print(message)
      return

    self.output_lines.append(message)

    # Status panel takes 3 lines, plus one spare
    visible = max(1, shutil.get_terminal_size().lines - 4)
    tail = list(self.output_lines)[-visible:]
    self.layout["output"].update(Text.from_markup("\n".join(tail)))

  def fail(self, step_name: str) -> None:
    """Turn the panel red on the failing step before it is torn down."""
    if not self.enabled:
      return

    self.colors = FAILED_COLORS
    self.status_text = f"x {step_name} failed"
    self._redraw_status()

  def cleanup(self) -> None:
    if self.live:
      self.live.stop()
      self.live = None
    self.initialized = False
