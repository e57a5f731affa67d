import sys

import pytest

import install
from archsetup.dualboot import PartitionPlanError
from archsetup.types import Phase

from conftest import make_context


def test_list_profiles(monkeypatch, capsys):
  monkeypatch.setattr(sys, "argv", ["install.py", "--list-profiles"])
  install.main()

  out = capsys.readouterr().out
  for name in ["nb-matthias", "nb-nee", "pc", "ws-pc", "nb-ws-mss"]:
    assert name in out


def test_phase_is_required(monkeypatch):
  monkeypatch.setattr(sys, "argv", ["install.py", "--dry"])
  with pytest.raises(SystemExit) as excinfo:
    install.main()
  assert excinfo.value.code == 2


def test_invalid_arguments_exit(monkeypatch, tmp_path):
  log = tmp_path / "archsetup.log"
  monkeypatch.setattr(
    sys, "argv", ["install.py", "pre-chroot", "-p", "pc", "--dry", "-t", "Vienna", "--log-file", str(log)]
  )
  with pytest.raises(SystemExit) as excinfo:
    install.main()
  assert excinfo.value.code == 1


def test_pre_chroot_dry_run_end_to_end(monkeypatch, capsys, tmp_path, no_prompts):
  log = tmp_path / "archsetup.log"
  argv = ["install.py", "pre-chroot", "-p", "ws-pc", "--dry", "--disk", "/dev/sda", "--log-file", str(log)]
  monkeypatch.setattr(sys, "argv", argv)
  install.main()

  out = capsys.readouterr().out
  assert "pacstrap -K /mnt" in out
  assert "Dry run completed successfully!" in out


def test_post_chroot_takes_profile_from_handoff(monkeypatch, capsys, tmp_path, no_prompts):
  (tmp_path / "profile.txt").write_text("nb-matthias\n")
  (tmp_path / "target_disk.txt").write_text("/dev/nvme0n1\n")
  argv = ["install.py", "post-chroot", "--dry", "--handoff-dir", str(tmp_path), "--log-file", str(tmp_path / "log")]
  monkeypatch.setattr(sys, "argv", argv)
  install.main()

  out = capsys.readouterr().out
  assert "Using profile recorded by the pre-chroot phase: nb-matthias" in out
  assert "NB-Matthias" in out
  assert "Dry run completed successfully!" in out


def test_post_chroot_without_any_profile_exits(monkeypatch, tmp_path):
  argv = ["install.py", "post-chroot", "--dry", "--handoff-dir", str(tmp_path), "--log-file", str(tmp_path / "log")]
  monkeypatch.setattr(sys, "argv", argv)
  with pytest.raises(SystemExit) as excinfo:
    install.main()
  assert excinfo.value.code == 1


def test_profile_values_fill_in_missing_flags():
  defaults = {"timezone": "Europe/Vienna", "locale": "en_US.UTF-8", "keymap": "us", "cache_server": "", "reflector": []}
  parser = install._create_argument_parser(defaults)
  args = parser.parse_args(["post-chroot", "-k", "de"])
  profile = install.InstallationProfile.from_dict(
    {"name": "Box", "description": "test", "hostname": "box", "config": {"timezone": "Europe/Berlin", "keymap": "fr"}}
  )
  config = install._create_context_config(args, profile, defaults)

  assert config.keymap == "de"
  assert config.timezone == "Europe/Berlin"
  assert config.locale == "en_US.UTF-8"


def test_failing_step_stops_the_phase(monkeypatch, capsys):
  ran: list[str] = []

  def step_0_settings(ctx, warnings):
    ran.append("settings")

  def step_3_dual_boot_partitioning(ctx, warnings):
    raise PartitionPlanError("no room")

  def step_4_encryption(ctx, warnings):
    ran.append("encryption")

  steps = [step_0_settings, step_3_dual_boot_partitioning, step_4_encryption]
  monkeypatch.setattr(install, "get_install_steps", lambda ctx: steps)
  ctx = make_context("nb-ws-mss", Phase.PRE_CHROOT)

  with pytest.raises(SystemExit) as excinfo:
    install._run_installation(ctx, ctx.ui, [])

  assert excinfo.value.code == 1
  assert ran == ["settings"]
  assert "FAILED Dual Boot Partitioning" in ctx.ui.lines
  out = capsys.readouterr().out
  assert "Step 'Dual Boot Partitioning' failed with error: no room" in out
