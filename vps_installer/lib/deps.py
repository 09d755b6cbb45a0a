from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..errors import ProvisionError
from ..logging_utils import SUCCESS
from .command import CommandError, format_argv, run_cmd

logger = logging.getLogger(__name__)

Probe = Callable[[str], bool]
InstallMany = Callable[[Sequence[str]], None]


class BootstrapError(ProvisionError):
    def __init__(self, packages: Sequence[str], reason: str) -> None:
        self.packages = list(packages)
        self.reason = reason
        super().__init__(f"{' '.join(self.packages)}: {reason}")


class InstallFailed(BootstrapError):
    pass


class CommandsUnresolved(BootstrapError):
    """The packages installed, but some commands still do not resolve."""

    def __init__(self, commands: Sequence[str], packages: Sequence[str]) -> None:
        self.commands = list(commands)
        super().__init__(packages, f"commands still missing after install: {' '.join(self.commands)}")


@dataclass(frozen=True)
class DependencySpec:
    command: str
    package: str

    @classmethod
    def parse(cls, value: str) -> "DependencySpec":
        """`cmd=pkg`, or a bare `cmd` when the package has the same name."""

        command, sep, package = value.partition("=")
        command = command.strip()
        package = package.strip() if sep else command
        if not command or not package:
            raise ValueError(f"Invalid dependency {value!r}; expected CMD or CMD=PKG")
        return cls(command=command, package=package)


@dataclass(frozen=True)
class BootstrapResult:
    missing: List[DependencySpec] = field(default_factory=list)
    installed_packages: List[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.missing


def dependencies_from_pairs(commands: Sequence[str], packages: Sequence[str]) -> List[DependencySpec]:
    """Zip the parallel command/package lists that library manifests declare."""

    if len(commands) != len(packages):
        raise ValueError(
            f"command and package lists differ in length ({len(commands)} != {len(packages)})"
        )
    return [DependencySpec(command=c, package=p) for c, p in zip(commands, packages)]


def merge_dependencies(*groups: Iterable[DependencySpec]) -> List[DependencySpec]:
    """Merge dependency lists keyed by command; the first registration wins.

    Re-registering a command with a different package is logged and the later
    registration is dropped.
    """

    merged: Dict[str, DependencySpec] = {}
    for group in groups:
        for dep in group:
            prev = merged.get(dep.command)
            if prev is None:
                merged[dep.command] = dep
            elif prev.package != dep.package:
                logger.warning(
                    "Dependency conflict for %s: keeping package %s, ignoring %s",
                    dep.command,
                    prev.package,
                    dep.package,
                )
    return list(merged.values())


def command_exists(name: str) -> bool:
    return shutil.which(name) is not None


def package_installer(package_manager: Sequence[str], *, dry_run: bool = False) -> InstallMany:
    """Build an install_many callable around a package-manager argv prefix."""

    prefix = list(package_manager)
    if not prefix:
        raise ValueError("package manager command is empty")

    def install_many(packages: Sequence[str]) -> None:
        argv = [*prefix, *packages]
        try:
            run_cmd(argv, dry_run=dry_run)
        except CommandError as e:
            raise InstallFailed(packages, f"exit status {e.result.returncode}; run manually: {format_argv(argv)}") from e
        except OSError as e:
            raise InstallFailed(packages, f"{e}; run manually: {format_argv(argv)}") from e

    return install_many


def ensure_commands(
    required: Sequence[DependencySpec],
    *,
    install_many: InstallMany,
    probe: Probe = command_exists,
    reprobe: bool = True,
) -> BootstrapResult:
    """Make every required command resolve, installing what is missing.

    Commands are probed once each (duplicates are dropped, first registration
    wins). The packages behind the missing commands are installed with a
    single `install_many` call. Raises InstallFailed when that call fails and
    CommandsUnresolved when a command is still missing afterwards.
    """

    missing: Dict[str, DependencySpec] = {}
    for dep in merge_dependencies(required):
        if probe(dep.command):
            logger.info("Checking %s - installed", dep.command)
        else:
            logger.info("Checking %s - not installed", dep.command)
            missing[dep.command] = dep

    if not missing:
        return BootstrapResult()

    packages: List[str] = list(dict.fromkeys(dep.package for dep in missing.values()))
    logger.info("Installing missing packages: %s", " ".join(packages))
    try:
        install_many(packages)
    except InstallFailed:
        logger.error("Failed to install %s", " ".join(packages))
        raise
    except (CommandError, OSError) as e:
        logger.error("Failed to install %s", " ".join(packages))
        raise InstallFailed(packages, str(e)) from e

    if reprobe:
        unresolved = [c for c in missing if not probe(c)]
        if unresolved:
            logger.error("Still missing after install: %s", " ".join(unresolved))
            raise CommandsUnresolved(unresolved, packages)

    logger.log(SUCCESS, "Installed %s", " ".join(packages))
    return BootstrapResult(missing=list(missing.values()), installed_packages=packages)


def bootstrap(
    required: Sequence[DependencySpec],
    package_manager: Sequence[str],
    *,
    dry_run: bool = False,
    probe: Optional[Probe] = None,
) -> BootstrapResult:
    """ensure_commands() using the given package manager argv."""

    return ensure_commands(
        required,
        install_many=package_installer(package_manager, dry_run=dry_run),
        probe=probe or command_exists,
        # A dry run installs nothing, so a re-probe would always fail.
        reprobe=not dry_run,
    )
