from __future__ import annotations

import logging
import platform
import shlex
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

from ..errors import UnsupportedSystem
from .command import CommandError, run_cmd

logger = logging.getLogger(__name__)

OS_RELEASE_PATH = "/etc/os-release"

# first word of NAME -> (package manager, package installer, package suffix)
_FAMILIES: Dict[str, Tuple[str, str, str]] = {
    "arch": ("pacman -S --noconfirm", "pacman -U --noconfirm", ".pkg.tar.zst"),
    "openwrt": ("opkg install", "opkg install", ".ipk"),
    "ubuntu": ("apt install -y", "dpkg -i", ".deb"),
    "debian": ("apt install -y", "dpkg -i", ".deb"),
    "red": ("dnf install -y", "rpm -i", ".rpm"),
    "centos": ("dnf install -y", "rpm -i", ".rpm"),
    "fedora": ("dnf install -y", "rpm -i", ".rpm"),
}


@dataclass(frozen=True)
class OSInfo:
    name: str
    kernel: str
    arch: str
    package_manager: Tuple[str, ...]
    package_installer: Tuple[str, ...]
    package_suffix: str
    codename: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.arch}_{self.name}_{self.kernel}"

    def with_package_manager(self, argv: Sequence[str]) -> "OSInfo":
        return OSInfo(
            name=self.name,
            kernel=self.kernel,
            arch=self.arch,
            package_manager=tuple(argv),
            package_installer=self.package_installer,
            package_suffix=self.package_suffix,
            codename=self.codename,
        )


def normalize_arch(machine: str) -> str:
    m = machine.lower()
    return {
        "x86_64": "amd64",
        "amd64": "amd64",
        "aarch64": "arm64",
        "arm64": "arm64",
        "armv7l": "armhf",
        "armv6l": "armhf",
    }.get(m, m)


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse the shell-style KEY=value lines of os-release(5)."""

    out: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        try:
            parts = shlex.split(value)
        except ValueError:
            parts = [value.strip("\"'")]
        out[key.strip()] = " ".join(parts)
    return out


def _dpkg_arch(*, dry_run: bool) -> Optional[str]:
    if dry_run or shutil.which("dpkg") is None:
        return None
    try:
        r = run_cmd(["dpkg", "--print-architecture"])
    except (CommandError, OSError):
        return None
    return r.stdout.strip() or None


def detect_os(
    *,
    os_release_path: str = OS_RELEASE_PATH,
    machine: Optional[str] = None,
    dry_run: bool = False,
) -> OSInfo:
    """Identify the distribution and its package tooling.

    Raises UnsupportedSystem for distributions without a known package manager.
    """

    p = Path(os_release_path)
    release = parse_os_release(p.read_text(encoding="utf-8")) if p.exists() else {}
    words = release.get("NAME", "").lower().split()
    name = words[0] if words else ""

    family = _FAMILIES.get(name)
    if family is None:
        raise UnsupportedSystem(f"unsupported system for {name or 'unknown'}")
    manager, installer, suffix = family

    raw_machine = machine or platform.machine()
    arch = raw_machine
    if name in {"ubuntu", "debian"}:
        arch = _dpkg_arch(dry_run=dry_run) or normalize_arch(raw_machine)

    info = OSInfo(
        name=name,
        kernel=platform.system().lower(),
        arch=arch,
        package_manager=tuple(shlex.split(manager)),
        package_installer=tuple(shlex.split(installer)),
        package_suffix=suffix,
        codename=release.get("UBUNTU_CODENAME") or release.get("VERSION_CODENAME") or None,
    )
    logger.info("Current system is: %s", info.label)
    return info
