"""
Tests for install_content() / remove_content().
"""

import os
import stat
from pathlib import Path

import pytest

from vps_installer.lib.content import (
    FileInstallSpec,
    InstallOutcome,
    InvalidArgument,
    PlacementFailed,
    ProtectedPath,
    RemovalOutcome,
    RemovalSpec,
    TempFileCreateFailed,
    install_content,
    parse_owner_group,
    remove_content,
)


def _spec(dest: Path, me, content="hello", mode="640", discard_backup=False) -> FileInstallSpec:
    owner, group = me
    return FileInstallSpec(
        mode=mode,
        owner=owner,
        group=group,
        content=content,
        destination=str(dest),
        discard_backup=discard_backup,
    )


def _snapshot(root: Path) -> dict:
    return {str(p.relative_to(root)): (p.read_bytes() if p.is_file() else None) for p in sorted(root.rglob("*"))}


class TestParseOwnerGroup:
    def test_owner_and_group(self):
        assert parse_owner_group("www-data:adm") == ("www-data", "adm")

    def test_bare_owner_is_also_group(self):
        assert parse_owner_group("root") == ("root", "root")

    def test_empty_group_kept_empty(self):
        assert parse_owner_group("root:") == ("root", "")


class TestValidation:
    @pytest.mark.parametrize("mode", ["64", "6440", "648", "rw-", "", 644])
    def test_bad_mode_rejected_without_mutation(self, tmp_path, staging, target, me, mode):
        dest = target / "etc" / "app.conf"
        before = _snapshot(tmp_path)

        with pytest.raises(InvalidArgument):
            install_content(_spec(dest, me, mode=mode), staging_dir=staging)

        assert _snapshot(tmp_path) == before

    def test_empty_owner_rejected(self, staging, target):
        spec = FileInstallSpec(mode="644", owner="", group="root", content="x", destination=str(target / "f"))
        with pytest.raises(InvalidArgument):
            install_content(spec, staging_dir=staging)

    def test_relative_destination_rejected(self, staging, me):
        with pytest.raises(InvalidArgument):
            install_content(_spec(Path("etc/app.conf"), me), staging_dir=staging)

    def test_directory_destination_rejected(self, staging, target, me):
        with pytest.raises(InvalidArgument):
            install_content(_spec(target, me), staging_dir=staging)

    def test_trailing_slash_destination_rejected(self, staging, target, me):
        owner, group = me
        dest = target / "etc" / "app"
        spec = FileInstallSpec(mode="644", owner=owner, group=group, content="x", destination=f"{dest}/")
        with pytest.raises(InvalidArgument):
            install_content(spec, staging_dir=staging)
        assert not dest.exists()
        assert not dest.parent.exists()

    def test_invalid_argument_is_value_error(self, staging, target, me):
        with pytest.raises(ValueError):
            install_content(_spec(target / "f", me, mode="99"), staging_dir=staging)


class TestInstallContent:
    def test_fresh_install(self, staging, target, me):
        dest = target / "etc" / "nginx" / "nginx.conf"

        outcome = install_content(_spec(dest, me, content="worker_processes auto;"), staging_dir=staging)

        assert outcome is InstallOutcome.INSTALLED
        assert dest.read_text() == "worker_processes auto;\n"
        assert stat.S_IMODE(os.stat(dest).st_mode) == 0o640
        assert not Path(str(dest) + ".bak").exists()

    def test_empty_content_writes_single_newline(self, staging, target, me):
        dest = target / ".hushlogin"
        install_content(_spec(dest, me, content=""), staging_dir=staging)
        assert dest.read_bytes() == b"\n"

    def test_bytes_content(self, staging, target, me):
        dest = target / "blob"
        install_content(_spec(dest, me, content=b"\x00\x01"), staging_dir=staging)
        assert dest.read_bytes() == b"\x00\x01\n"

    def test_backup_preserved(self, staging, target, me):
        dest = target / "app.conf"
        dest.write_text("C1\n")

        outcome = install_content(_spec(dest, me, content="C2"), staging_dir=staging)

        assert outcome is InstallOutcome.INSTALLED_WITH_BACKUP_KEPT
        assert dest.read_text() == "C2\n"
        assert (target / "app.conf.bak").read_text() == "C1\n"

    def test_backup_discarded(self, staging, target, me):
        dest = target / "app.conf"
        dest.write_text("C1\n")

        outcome = install_content(_spec(dest, me, content="C2", discard_backup=True), staging_dir=staging)

        assert outcome is InstallOutcome.INSTALLED_WITH_BACKUP_DISCARDED
        assert dest.read_text() == "C2\n"
        assert not (target / "app.conf.bak").exists()

    def test_discard_on_replace_removes_stale_backup(self, staging, target, me):
        dest = target / "app.conf"
        dest.write_text("C1\n")
        (target / "app.conf.bak").write_text("C0\n")

        install_content(_spec(dest, me, content="C2", discard_backup=True), staging_dir=staging)

        assert not (target / "app.conf.bak").exists()

    def test_discard_on_fresh_install_keeps_unrelated_backup(self, staging, target, me):
        dest = target / "app.conf"
        (target / "app.conf.bak").write_text("operator copy\n")

        outcome = install_content(_spec(dest, me, content="C2", discard_backup=True), staging_dir=staging)

        assert outcome is InstallOutcome.INSTALLED
        assert dest.read_text() == "C2\n"
        assert (target / "app.conf.bak").read_text() == "operator copy\n"

    def test_idempotent_with_discard(self, staging, target, me):
        dest = target / "app.conf"
        spec = _spec(dest, me, content="same", discard_backup=True)

        install_content(spec, staging_dir=staging)
        once = _snapshot(target)
        install_content(spec, staging_dir=staging)

        assert _snapshot(target) == once

    def test_mode_reapplied_on_existing_file(self, staging, target, me):
        dest = target / "authorized_keys"
        dest.write_text("old\n")
        os.chmod(dest, 0o644)

        install_content(_spec(dest, me, content="key", mode="600", discard_backup=True), staging_dir=staging)

        assert stat.S_IMODE(os.stat(dest).st_mode) == 0o600

    def test_staging_file_removed(self, staging, target, me):
        install_content(_spec(target / "a", me), staging_dir=staging)
        assert list(staging.iterdir()) == []

    def test_placement_failure_keeps_previous_content(self, staging, target):
        dest = target / "app.conf"
        dest.write_text("C1\n")
        spec = FileInstallSpec(
            mode="644",
            owner="no-such-user-vps-installer",
            group="no-such-group-vps-installer",
            content="C2",
            destination=str(dest),
        )

        with pytest.raises(PlacementFailed):
            install_content(spec, staging_dir=staging)

        assert dest.read_text() == "C1\n"
        assert sorted(p.name for p in target.iterdir()) == ["app.conf"]
        assert list(staging.iterdir()) == []

    def test_missing_staging_dir(self, tmp_path, target, me):
        with pytest.raises(TempFileCreateFailed):
            install_content(_spec(target / "a", me), staging_dir=tmp_path / "gone")
        assert not (target / "a").exists()

    def test_dry_run_reports_outcome_without_writing(self, staging, target, me):
        dest = target / "app.conf"
        dest.write_text("C1\n")

        outcome = install_content(_spec(dest, me, content="C2"), staging_dir=staging, dry_run=True)

        assert outcome is InstallOutcome.INSTALLED_WITH_BACKUP_KEPT
        assert dest.read_text() == "C1\n"
        assert not (target / "app.conf.bak").exists()


class TestRemoveContent:
    @pytest.mark.parametrize("path", ["/", "/.", "/..", "/./", "/../", "//", "/tmp/.."])
    def test_root_aliases_protected(self, path):
        with pytest.raises(ProtectedPath):
            remove_content(RemovalSpec(destination=path))

    @pytest.mark.parametrize("path", ["", "relative/path"])
    def test_non_absolute_protected(self, path):
        with pytest.raises(ProtectedPath):
            remove_content(RemovalSpec(destination=path))

    def test_missing_path_is_not_found(self, target):
        outcome = remove_content(RemovalSpec(destination=str(target / "nope")))
        assert outcome is RemovalOutcome.NOT_FOUND

    def test_removes_file(self, target):
        f = target / ".bash_history"
        f.write_text("ls\n")
        assert remove_content(RemovalSpec(destination=str(f))) is RemovalOutcome.REMOVED
        assert not f.exists()

    def test_removes_tree(self, target):
        d = target / "var" / "www" / "html"
        (d / "sub").mkdir(parents=True)
        (d / "sub" / "index.html").write_text("<html/>")

        assert remove_content(RemovalSpec(destination=str(d))) is RemovalOutcome.REMOVED
        assert not d.exists()
        assert (target / "var" / "www").is_dir()

    def test_symlink_removed_not_followed(self, target):
        real = target / "real"
        real.mkdir()
        (real / "keep").write_text("x")
        link = target / "link"
        link.symlink_to(real)

        remove_content(RemovalSpec(destination=str(link)))

        assert not os.path.lexists(link)
        assert (real / "keep").exists()

    def test_second_removal_is_not_found(self, target):
        f = target / "junk"
        f.write_text("")
        spec = RemovalSpec(destination=str(f))
        remove_content(spec)
        assert remove_content(spec) is RemovalOutcome.NOT_FOUND

    def test_dry_run_keeps_path(self, target):
        f = target / "junk"
        f.write_text("")
        assert remove_content(RemovalSpec(destination=str(f)), dry_run=True) is RemovalOutcome.REMOVED
        assert f.exists()
