from rich.console import Console
from rich.prompt import Prompt, PromptBase
from archsetup.validations import (
  validate_disk,
  validate_nvme_controller,
  validate_password,
)

console = Console()


class IntegerPrompt(PromptBase[int]):
  response_type = int
  validate_error_message = "\n[prompt.invalid]Please enter a valid integer number"
  illegal_choice_message = "\n[prompt.invalid.choice]Please select one of the available options"


class DiskPrompt:
  @classmethod
  def ask(cls, message: str, nvme_only: bool = False, must_exist: bool = True) -> str:
    while True:
      disk = Prompt.ask(message).strip()
      if not validate_disk(disk, nvme_only=nvme_only, must_exist=must_exist):
        kind = "an NVMe namespace like /dev/nvme0n1" if nvme_only else "a whole disk like /dev/sda or /dev/nvme0n1"
        console.print(f"\n[prompt.invalid]Invalid device - expected {kind} that exists.[/]")
        continue
      return disk


class DrivesPrompt:
  @classmethod
  def ask(cls, message: str, must_exist: bool = True) -> list[str]:
    while True:
      drives = Prompt.ask(message).split()
      if not drives:
        console.print("\n[prompt.invalid]Enter at least one drive.[/]")
        continue

      invalid = [drive for drive in drives if not validate_nvme_controller(drive, must_exist=must_exist)]
      if invalid:
        console.print(f"\n[prompt.invalid]Unsupported or missing device(s): {', '.join(invalid)}. Only /dev/nvmeX is allowed.[/]")
        continue
      return drives


class PasswordPrompt:
  @classmethod
  def ask(cls, message: str) -> str:
    while True:
      user_pass = Prompt.ask(message, password=True)
      if not validate_password(user_pass):
        console.print("\n[prompt.invalid]Invalid password - try again.[/]")
        continue

      user_pass_check = Prompt.ask("Verify the password", password=True)
      if user_pass != user_pass_check:
        console.print("\n[prompt.invalid]Passwords don't match, please try again.[/]")
        continue

      return user_pass
