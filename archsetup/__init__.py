"""Per-machine Arch Linux installer: LVM on LUKS, systemd-boot and KDE Plasma."""

__version__ = "0.1.0"
