from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .lib.content import FileInstallSpec, RemovalSpec, parse_owner_group
from .lib.deps import DependencySpec
from .lib.ini import render_ini

DEFAULT_STATE_PATH = "/var/lib/vps-installer/state.json"


def _parse_dependency(item: Any) -> DependencySpec:
    if isinstance(item, str):
        return DependencySpec.parse(item)
    if isinstance(item, dict):
        command = str(item.get("command") or "").strip()
        package = str(item.get("package") or command).strip()
        if command:
            return DependencySpec(command=command, package=package)
    raise ValueError(f"Invalid dependency entry: {item!r}")


def _mode_str(value: Any, path: str) -> str:
    # YAML 1.1 reads an unquoted 0644 as the int 420.
    if not isinstance(value, str):
        raise ValueError(f"{path}: quote the mode (mode: \"644\"), got {value!r}")
    return value.strip()


@dataclass(frozen=True)
class ProvisionPlan:
    raw: Dict[str, Any]
    base_dir: Path = Path(".")

    @property
    def state_path(self) -> str:
        return str(self.raw.get("state") or DEFAULT_STATE_PATH)

    @property
    def log_path(self) -> Optional[str]:
        value = self.raw.get("log")
        return str(value) if value else None

    @property
    def package_manager(self) -> Optional[List[str]]:
        value = self.raw.get("package_manager")
        if not value:
            return None
        if isinstance(value, str):
            return shlex.split(value)
        return [str(v) for v in value]

    @property
    def dependencies(self) -> List[DependencySpec]:
        return [_parse_dependency(item) for item in (self.raw.get("dependencies") or [])]

    @property
    def removals(self) -> List[RemovalSpec]:
        return [RemovalSpec(destination=str(p)) for p in (self.raw.get("remove") or [])]

    @property
    def files(self) -> List[FileInstallSpec]:
        return [self._file_spec(item) for item in (self.raw.get("files") or [])]

    def _file_spec(self, item: Any) -> FileInstallSpec:
        if not isinstance(item, dict) or not item.get("path"):
            raise ValueError(f"Invalid file entry (needs a path): {item!r}")

        sources = [k for k in ("content", "source", "ini") if k in item]
        if len(sources) > 1:
            raise ValueError(f"{item['path']}: use only one of content/source/ini")

        if "source" in item:
            src = Path(str(item["source"]))
            if not src.is_absolute():
                src = self.base_dir / src
            content = src.read_text(encoding="utf-8").rstrip("\n")
        elif "ini" in item:
            content = render_ini(item.get("ini") or {})
        else:
            content = str(item.get("content") or "").rstrip("\n")

        owner, group = parse_owner_group(str(item.get("owner") or "root:root"))
        return FileInstallSpec(
            mode=_mode_str(item.get("mode", "644"), str(item["path"])),
            owner=owner,
            group=group,
            content=content,
            destination=str(item["path"]),
            discard_backup=bool(item.get("discard_backup", False)),
        )


def load_plan(path: str) -> ProvisionPlan:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("provisioning plan must be YAML")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError("provisioning plan must contain a mapping/object")

    return ProvisionPlan(raw=raw, base_dir=p.parent)
