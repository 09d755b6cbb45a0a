from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Sequence

from .errors import PermissionDenied
from .lib.osinfo import OSInfo, detect_os

logger = logging.getLogger(__name__)

TEMP_PREFIX = "vps_installer_"


@dataclass(frozen=True)
class ProvisioningContext:
    """Everything an installer operation needs from its surroundings."""

    temp_dir: Path
    os_info: OSInfo
    dry_run: bool = False

    @property
    def package_manager(self) -> Sequence[str]:
        return self.os_info.package_manager


def check_permission(*, dry_run: bool = False) -> None:
    euid = os.geteuid()
    logger.debug("Effective uid is %s", euid)
    if euid != 0 and not dry_run:
        raise PermissionDenied("please run the installer as root")


@contextlib.contextmanager
def staging_directory(*, parent: Optional[str] = None) -> Iterator[Path]:
    """A private temp directory, removed on every exit path."""

    path = Path(tempfile.mkdtemp(prefix=TEMP_PREFIX, dir=parent))
    logger.debug("Created staging directory %s", path)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        logger.debug("Removed staging directory %s", path)


@contextlib.contextmanager
def provisioning_context(
    *,
    dry_run: bool = False,
    os_info: Optional[OSInfo] = None,
    package_manager: Optional[Sequence[str]] = None,
    temp_parent: Optional[str] = None,
) -> Iterator[ProvisioningContext]:
    info = os_info or detect_os(dry_run=dry_run)
    if package_manager:
        info = info.with_package_manager(package_manager)

    with staging_directory(parent=temp_parent) as temp_dir:
        yield ProvisioningContext(temp_dir=temp_dir, os_info=info, dry_run=dry_run)
