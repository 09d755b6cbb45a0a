from __future__ import annotations

import argparse
import logging
import shlex
import sys
from typing import Any, Dict, Optional

import yaml

from .context import provisioning_context, staging_directory
from .errors import ProvisionError
from .lib.content import FileInstallSpec, RemovalSpec, install_content, parse_owner_group, remove_content
from .lib.credentials import generate_random_password, generate_random_uuid
from .lib.deps import DependencySpec, bootstrap
from .lib.ini import load_ini_value
from .lib.osinfo import detect_os
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .pipeline import run_pipeline
from .plan import load_plan
from .state_store import ensure_defaults, load_state, save_state
from .steps import CheckEnvironmentStep, EnsureDependenciesStep, InstallFilesStep, RemovePathsStep

logger = logging.getLogger(__name__)


def run_provision(
    plan_path: str,
    *,
    state_path: Optional[str] = None,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    force: bool = False,
    dry_run: bool = False,
    log_path: Optional[str] = None,
    log_level: int = logging.INFO,
) -> Dict[str, Any]:
    """Run a provisioning plan, persisting state for resume.

    The log goes to `log_path`, else the plan's `log`, else the default.
    """

    plan = load_plan(plan_path)
    requested_log_path = log_path or plan.log_path or DEFAULT_LOG_PATH
    actual_log_path = configure_logging(log_path=requested_log_path, level=log_level)
    actual_state_path = state_path or plan.state_path

    state = ensure_defaults(load_state(actual_state_path))
    state["plan"] = plan_path
    state["config"]["dry_run"] = dry_run
    paths = state["execution"].setdefault("paths", {})
    paths["log_path_requested"] = requested_log_path
    paths["log_path_actual"] = actual_log_path

    try:
        with provisioning_context(dry_run=dry_run, package_manager=plan.package_manager) as ctx:
            steps = [
                CheckEnvironmentStep(ctx),
                EnsureDependenciesStep(ctx, plan),
                RemovePathsStep(ctx, plan),
                InstallFilesStep(ctx, plan),
            ]
            result = run_pipeline(
                state=state,
                steps=steps,
                start_at=start_at,
                stop_after=stop_after,
                force=force,
            )
        state = result.state
        state["execution"]["summary"] = {
            "ran_steps": result.ran_steps,
            "skipped_steps": result.skipped_steps,
        }
        return state
    finally:
        save_state(actual_state_path, state)


def _log_level(args: argparse.Namespace) -> int:
    return logging.DEBUG if args.verbose else logging.INFO


def cmd_provision(args: argparse.Namespace) -> int:
    run_provision(
        args.plan,
        state_path=args.state,
        start_at=args.start_at,
        stop_after=args.stop_after,
        force=args.force,
        dry_run=args.dry_run,
        log_path=args.log,
        log_level=_log_level(args),
    )
    return 0


def cmd_install_content(args: argparse.Namespace) -> int:
    content = args.content if args.content is not None else sys.stdin.read().rstrip("\n")
    owner, group = parse_owner_group(args.owner)
    spec = FileInstallSpec(
        mode=args.mode,
        owner=owner,
        group=group,
        content=content,
        destination=args.destination,
        discard_backup=args.discard_backup,
    )
    with staging_directory() as staging:
        outcome = install_content(spec, staging_dir=staging, dry_run=args.dry_run)
    print(outcome.value)
    return 0


def cmd_remove_content(args: argparse.Namespace) -> int:
    outcome = remove_content(RemovalSpec(destination=args.destination), dry_run=args.dry_run)
    print(outcome.value)
    return 0


def cmd_ensure_commands(args: argparse.Namespace) -> int:
    required = [DependencySpec.parse(v) for v in args.dependencies]
    if args.package_manager:
        package_manager = shlex.split(args.package_manager)
    else:
        package_manager = list(detect_os(dry_run=args.dry_run).package_manager)
    result = bootstrap(required, package_manager, dry_run=args.dry_run)
    for pkg in result.installed_packages:
        print(pkg)
    return 0


def cmd_config_get(args: argparse.Namespace) -> int:
    value = load_ini_value(args.key, args.path)
    if value is None:
        logger.error("%s not set in %s", args.key, args.path)
        return 1
    print(value)
    return 0


def cmd_random_password(args: argparse.Namespace) -> int:
    print(generate_random_password())
    return 0


def cmd_random_uuid(args: argparse.Namespace) -> int:
    print(generate_random_uuid())
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="vps-installer")
    p.add_argument("--log", default=None, help=f"Path to installer log (default: the plan's, else {DEFAULT_LOG_PATH})")
    p.add_argument("--dry-run", action="store_true", help="Log what would change without changing it")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = p.add_subparsers(dest="subcmd", required=True)

    sp = sub.add_parser("provision", help="Run a YAML provisioning plan")
    sp.add_argument("plan")
    sp.add_argument("--state", default=None, help="Path to state (json|yaml); defaults to the plan's")
    sp.add_argument("--start-at", default=None, help="Start at step_id (e.g. 30_remove_paths)")
    sp.add_argument("--stop-after", default=None, help="Stop after step_id")
    sp.add_argument("--force", action="store_true", help="Re-run steps even if marked completed")
    sp.set_defaults(func=cmd_provision)

    sp = sub.add_parser("install-content", help="Install stdin (or --content) at an absolute path")
    sp.add_argument("destination")
    sp.add_argument("--mode", default="644", help="3 octal digits (default: 644)")
    sp.add_argument("--owner", default="root:root", help="owner[:group] (default: root:root)")
    sp.add_argument("--content", default=None)
    sp.add_argument("--discard-backup", action="store_true", help="Do not keep <destination>.bak")
    sp.set_defaults(func=cmd_install_content)

    sp = sub.add_parser("remove-content", help="Remove a file or directory tree")
    sp.add_argument("destination")
    sp.set_defaults(func=cmd_remove_content)

    sp = sub.add_parser("ensure-commands", help="Install packages for missing commands")
    sp.add_argument("dependencies", nargs="+", metavar="CMD[=PKG]")
    sp.add_argument("--package-manager", default=None, help='e.g. "apt install -y" (default: detected)')
    sp.set_defaults(func=cmd_ensure_commands)

    sp = sub.add_parser("config-get", help="Read one key from a key=value config file")
    sp.add_argument("key")
    sp.add_argument("path")
    sp.set_defaults(func=cmd_config_get)

    sp = sub.add_parser("random-password", help="Print a random 32-character hex password")
    sp.set_defaults(func=cmd_random_password)

    sp = sub.add_parser("random-uuid", help="Print a random UUID")
    sp.set_defaults(func=cmd_random_uuid)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    # provision picks its log path once the plan is loaded
    if args.func is not cmd_provision:
        configure_logging(log_path=args.log or DEFAULT_LOG_PATH, level=_log_level(args))

    try:
        return int(args.func(args))
    except (ProvisionError, ValueError, FileNotFoundError, yaml.YAMLError) as e:
        configure_logging(log_path=args.log or DEFAULT_LOG_PATH, level=_log_level(args))
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
