import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

DEFAULT_LOG_PATH = "/tmp/archsetup.log"


def configure_logging(log_path: str = DEFAULT_LOG_PATH, verbose: bool = False, console: Console | None = None) -> str:
  """
  Send warnings to the terminal through rich and everything to a log file.

  When the requested log file cannot be opened, the log is written next to
  the working directory instead. Returns the path actually used.
  """
  root = logging.getLogger()
  root.setLevel(logging.DEBUG)

  if getattr(root, "_archsetup_configured", False):
    return getattr(root, "_archsetup_log_path", log_path)

  rich_handler = RichHandler(console=console, markup=False, rich_tracebacks=True, show_path=False)
  rich_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
  root.addHandler(rich_handler)

  chosen_path = log_path
  try:
    Path(log_path).parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path)
  except OSError:
    chosen_path = str(Path.cwd() / "archsetup.log")
    file_handler = logging.FileHandler(chosen_path)

  file_handler.setLevel(logging.DEBUG)
  file_handler.setFormatter(
    logging.Formatter(fmt="%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%Y-%m-%dT%H:%M:%S%z")
  )
  root.addHandler(file_handler)

  setattr(root, "_archsetup_configured", True)
  setattr(root, "_archsetup_log_path", chosen_path)

  logging.getLogger(__name__).info("Logging initialized (requested=%s, actual=%s)", log_path, chosen_path)
  return chosen_path
