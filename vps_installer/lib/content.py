from __future__ import annotations

import enum
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

from ..errors import ProvisionError
from ..logging_utils import SUCCESS

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".bak"

_OCTAL_DIGITS = frozenset("01234567")

# Paths that mean "the whole tree"; never removed.
_ROOT_ALIASES = frozenset({"/", "/.", "/..", "/./", "/../"})


class InstallError(ProvisionError):
    def __init__(self, destination: str, reason: str) -> None:
        self.destination = destination
        self.reason = reason
        super().__init__(f"{destination}: {reason}")


class InvalidArgument(InstallError, ValueError):
    pass


class TempFileCreateFailed(InstallError):
    pass


class PlacementFailed(InstallError):
    pass


class RemovalError(ProvisionError):
    def __init__(self, destination: str, reason: str) -> None:
        self.destination = destination
        self.reason = reason
        super().__init__(f"{destination}: {reason}")


class ProtectedPath(RemovalError):
    pass


class DeleteFailed(RemovalError):
    pass


class InstallOutcome(enum.Enum):
    INSTALLED = "installed"
    INSTALLED_WITH_BACKUP_KEPT = "installed_with_backup_kept"
    INSTALLED_WITH_BACKUP_DISCARDED = "installed_with_backup_discarded"


class RemovalOutcome(enum.Enum):
    REMOVED = "removed"
    NOT_FOUND = "not_found"


def parse_owner_group(value: str) -> Tuple[str, str]:
    """Split `owner[:group]`; a bare owner doubles as the group."""

    owner = value.split(":", 1)[0]
    group = value.rsplit(":", 1)[-1]
    return owner, group


@dataclass(frozen=True)
class FileInstallSpec:
    mode: str
    owner: str
    group: str
    content: Union[str, bytes]
    destination: str
    discard_backup: bool = False

    @property
    def backup_path(self) -> str:
        return self.destination + BACKUP_SUFFIX

    def validate(self) -> None:
        mode = self.mode
        if not isinstance(mode, str) or len(mode) != 3 or not set(mode) <= _OCTAL_DIGITS:
            raise InvalidArgument(self.destination, f"mode must be 3 octal digits like 644, got {mode!r}")
        if not self.owner or not self.group:
            raise InvalidArgument(self.destination, "owner and group are required (owner:group)")
        if not self.destination or not self.destination.startswith("/"):
            raise InvalidArgument(self.destination, "destination must be an absolute path")
        if self.destination.endswith("/"):
            raise InvalidArgument(self.destination, "destination must name a file, not a directory")
        if os.path.isdir(self.destination):
            raise InvalidArgument(self.destination, "destination is a directory")

    def payload(self) -> bytes:
        data = self.content.encode("utf-8") if isinstance(self.content, str) else bytes(self.content)
        return data + b"\n"


@dataclass(frozen=True)
class RemovalSpec:
    destination: str

    def validate(self) -> None:
        d = self.destination
        if not d or not d.startswith("/"):
            raise ProtectedPath(d, "destination must be an absolute path")
        if d in _ROOT_ALIASES or os.path.normpath(d) in {"/", "//"}:
            raise ProtectedPath(d, "refusing to remove the filesystem root")


def _backup(dest: Path) -> None:
    """Copy dest to dest.bak, replacing any previous backup in one rename."""

    bak = dest.with_name(dest.name + BACKUP_SUFFIX)
    fd, tmp = tempfile.mkstemp(prefix=f".{bak.name}.", dir=str(dest.parent))
    os.close(fd)
    try:
        shutil.copy2(dest, tmp)
        st = dest.stat()
        os.chown(tmp, st.st_uid, st.st_gid)
        os.replace(tmp, bak)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def _place(staging: Path, spec: FileInstallSpec, dest: Path, *, keep_backup: bool) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{dest.name}.", dir=str(dest.parent))
    os.close(fd)
    sibling = Path(tmp)
    try:
        shutil.copyfile(staging, sibling)
        shutil.chown(sibling, user=spec.owner, group=spec.group)
        os.chmod(sibling, int(spec.mode, 8))
        if keep_backup:
            _backup(dest)
        os.replace(sibling, dest)
    finally:
        sibling.unlink(missing_ok=True)


def install_content(
    spec: FileInstallSpec,
    *,
    staging_dir: Union[str, Path],
    dry_run: bool = False,
) -> InstallOutcome:
    """Install spec.content at spec.destination with mode and ownership.

    The content is staged in `staging_dir` first, then moved into place with
    a single rename so the destination is never missing or half written. A
    previous regular file is kept at `<destination>.bak` unless
    `spec.discard_backup` is set, in which case the replaced file leaves no
    backup behind. A `.bak` next to a destination that did not exist yet is
    left alone.

    Raises InvalidArgument (before touching the filesystem),
    TempFileCreateFailed or PlacementFailed.
    """

    spec.validate()
    dest = Path(spec.destination)
    replacing = dest.is_file()
    if not replacing:
        outcome = InstallOutcome.INSTALLED
    elif spec.discard_backup:
        outcome = InstallOutcome.INSTALLED_WITH_BACKUP_DISCARDED
    else:
        outcome = InstallOutcome.INSTALLED_WITH_BACKUP_KEPT

    if dry_run:
        logger.info("Would install content for %s (%s %s:%s, %s)", dest, spec.mode, spec.owner, spec.group, outcome.value)
        return outcome

    try:
        fd, staging_name = tempfile.mkstemp(prefix="tempfile_", dir=str(staging_dir))
    except OSError as e:
        logger.error("Installing content for %s - failed to create temporary file", dest)
        raise TempFileCreateFailed(spec.destination, str(e)) from e

    staging = Path(staging_name)
    try:
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(spec.payload())
        except OSError as e:
            logger.error("Installing content for %s - failed to write temporary file", dest)
            raise TempFileCreateFailed(spec.destination, str(e)) from e

        try:
            _place(staging, spec, dest, keep_backup=replacing and not spec.discard_backup)
        except (OSError, LookupError) as e:
            logger.error("Installing content for %s - error", dest)
            raise PlacementFailed(spec.destination, str(e)) from e
    finally:
        staging.unlink(missing_ok=True)

    if replacing and spec.discard_backup:
        Path(spec.backup_path).unlink(missing_ok=True)

    if outcome is InstallOutcome.INSTALLED_WITH_BACKUP_KEPT:
        logger.warning("Installing content for %s - done, previous content kept at %s", dest, spec.backup_path)
    else:
        logger.log(SUCCESS, "Installing content for %s - done", dest)
    return outcome


def remove_content(spec: RemovalSpec, *, dry_run: bool = False) -> RemovalOutcome:
    """Remove a file, symlink or directory tree; a missing path is a no-op.

    Raises ProtectedPath for relative paths and root aliases, DeleteFailed
    when the removal itself fails.
    """

    try:
        spec.validate()
    except ProtectedPath:
        logger.error("Removing content for %s - refused", spec.destination or "''")
        raise

    p = Path(spec.destination)
    if not os.path.lexists(p):
        logger.info("Removing content for %s - not exist", p)
        return RemovalOutcome.NOT_FOUND

    if dry_run:
        logger.info("Would remove %s", p)
        return RemovalOutcome.REMOVED

    try:
        if p.is_dir() and not p.is_symlink():
            shutil.rmtree(p)
        else:
            p.unlink()
    except OSError as e:
        logger.error("Removing content for %s - error", p)
        raise DeleteFailed(spec.destination, str(e)) from e

    logger.log(SUCCESS, "Removing content for %s - done", p)
    return RemovalOutcome.REMOVED
