"""
Shared test fixtures.
"""

import grp
import logging
import os
import pwd
from pathlib import Path

import pytest

from vps_installer.lib.osinfo import OSInfo


@pytest.fixture
def staging(tmp_path: Path) -> Path:
    """Staging directory for install_content()."""
    d = tmp_path / "staging"
    d.mkdir()
    return d


@pytest.fixture
def target(tmp_path: Path) -> Path:
    """Directory standing in for the filesystem being provisioned."""
    d = tmp_path / "target"
    d.mkdir()
    return d


@pytest.fixture
def me() -> tuple:
    """(owner, group) names of the current process; chown to these always works."""
    return pwd.getpwuid(os.getuid()).pw_name, grp.getgrgid(os.getgid()).gr_name


@pytest.fixture
def ubuntu() -> OSInfo:
    return OSInfo(
        name="ubuntu",
        kernel="linux",
        arch="amd64",
        package_manager=("apt", "install", "-y"),
        package_installer=("dpkg", "-i"),
        package_suffix=".deb",
        codename="noble",
    )


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo configure_logging() so each CLI test starts from a clean root logger."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for attr in ("_vps_installer_configured", "_vps_installer_log_path"):
        if hasattr(root, attr):
            delattr(root, attr)
    root.setLevel(level)
