"""Tests for ``toolscope profile``.

Verifies:
    - Profiles are created empty, from a project snapshot, or from the
      projects under a folder or in the registry.
    - ``capture`` reports captured and failed tools through its exit code.
    - ``install`` and ``assign`` write into the project after confirmation.
    - Plugins are unassigned and uninstalled; ``sync`` re-applies a profile.
    - ``export`` and ``import`` move a profile through a portable file.
    - ``check-updates`` exits 1 while a tracked origin has drifted.
    - Unknown profiles and malformed arguments exit with code 2.
"""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from toolscope.cli.main import cli
from toolscope.config import ConfigPaths
from toolscope.core.profiles.store import ProfileStore
from tests.helpers import read_json, write_command, write_skill


def _create(runner: CliRunner, *args: str) -> None:
    result = runner.invoke(cli, ["profile", "create", *args])
    assert result.exit_code == 0, result.output


class TestProfileCreate:
    """Tests for ``profile create`` and ``profile list``."""

    def test_create_and_list(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        result = runner.invoke(cli, ["profile", "create", "web", "-d", "Frontend"])
        assert result.exit_code == 0, result.output
        assert "Created profile web" in result.output

        listed = runner.invoke(cli, ["profile", "list", "--json"])
        [summary] = json.loads(listed.output)
        assert summary["name"] == "web"
        assert summary["description"] == "Frontend"
        assert summary["tool_count"] == 0

    def test_duplicate_name(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        _create(runner, "web")
        result = runner.invoke(cli, ["profile", "create", "web"])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_snapshot(self, runner: CliRunner, cli_env: ConfigPaths, project: Path) -> None:
        """``--from`` captures the project's tools."""
        write_command(project / ".claude" / "commands", "review")
        result = runner.invoke(cli, ["profile", "create", "app", "--from", str(project)])
        assert result.exit_code == 0, result.output
        assert "with 1 tool(s)" in result.output

    def test_empty_list(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        result = runner.invoke(cli, ["profile", "list"])
        assert "No profiles yet." in result.output

    def test_from_folder(self, runner: CliRunner, cli_env: ConfigPaths, tmp_path: Path) -> None:
        """Tools of every project under the folder are collected."""
        dev = tmp_path / "dev"
        write_command(dev / "api" / ".claude" / "commands", "review")
        write_skill(dev / "web" / ".claude" / "skills", "lint")

        result = runner.invoke(cli, ["profile", "create", "all", "--from-folder", str(dev)])

        assert result.exit_code == 0, result.output
        assert "with 2 tool(s)" in result.output
        refs = ProfileStore(cli_env).resolve("all").tool_refs
        assert {r.name for r in refs} == {"review", "lint"}

    def test_from_registered_only(
        self, runner: CliRunner, cli_env: ConfigPaths, project: Path, other_project: Path
    ) -> None:
        write_command(project / ".claude" / "commands", "review")
        write_skill(other_project / ".claude" / "skills", "lint")
        store = ProfileStore(cli_env)
        store.registry.register(project)
        store.registry.register(other_project)

        result = runner.invoke(
            cli,
            ["profile", "create", "lint", "--from-registered", "--only", "skill:lint", "--track"],
        )

        assert result.exit_code == 0, result.output
        [ref] = ProfileStore(cli_env).resolve("lint").tool_refs
        assert ref.name == "lint"
        assert ref.source_ref is not None
        assert ref.source_ref.origin_path.is_relative_to(other_project)

    def test_nothing_registered(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        result = runner.invoke(cli, ["profile", "create", "none", "--from-registered"])
        assert result.exit_code == 2
        assert "no projects found" in result.output
        assert ProfileStore(cli_env).list() == []

    def test_conflicting_sources(
        self, runner: CliRunner, cli_env: ConfigPaths, project: Path
    ) -> None:
        both = runner.invoke(
            cli, ["profile", "create", "x", "--from", str(project), "--from-registered"]
        )
        assert both.exit_code == 2
        only = runner.invoke(
            cli, ["profile", "create", "x", "--from", str(project), "--only", "skill:lint"]
        )
        assert only.exit_code == 2
        assert "--only needs" in only.output


class TestProfileCapture:
    """Tests for ``profile capture``."""

    def test_capture_from_user_scope(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        write_command(cli_env.claude_dir / "commands", "review")
        _create(runner, "web")

        result = runner.invoke(
            cli, ["profile", "capture", "web", "command:review", "--scope", "user"]
        )

        assert result.exit_code == 0, result.output
        assert "1 captured, 0 failed" in result.output
        [ref] = ProfileStore(cli_env).resolve("web").tool_refs
        assert ref.name == "review"
        assert ref.source_ref is not None

    def test_missing_tool_fails(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        _create(runner, "web")
        result = runner.invoke(
            cli, ["profile", "capture", "web", "skill:ghost", "--scope", "user"]
        )
        assert result.exit_code == 1
        assert "0 captured, 1 failed" in result.output

    def test_source_required(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        """Exactly one of --from and --scope must be given."""
        _create(runner, "web")
        result = runner.invoke(cli, ["profile", "capture", "web", "skill:x"])
        assert result.exit_code == 2

    def test_malformed_tool(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        _create(runner, "web")
        result = runner.invoke(cli, ["profile", "capture", "web", "review", "--scope", "user"])
        assert result.exit_code == 2
        assert "KIND:NAME" in result.output

    def test_unknown_profile(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        result = runner.invoke(cli, ["profile", "show", "nope"])
        assert result.exit_code == 2
        assert "not found" in result.output


class TestProfileShowAndEdit:
    """Tests for ``profile show``, ``remove-tool`` and ``delete``."""

    def test_show_with_availability(
        self, runner: CliRunner, cli_env: ConfigPaths, project: Path
    ) -> None:
        """Captured tools are always reported available."""
        write_command(project / ".claude" / "commands", "review")
        _create(runner, "app", "--from", str(project))

        result = runner.invoke(
            cli, ["profile", "show", "app", "--project", str(project), "--json"]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [t["name"] for t in data["tool_refs"]] == ["review"]
        assert data["availability"][0]["available"] is True

    def test_remove_bad_index(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        _create(runner, "web")
        result = runner.invoke(cli, ["profile", "remove-tool", "web", "3", "--yes"])
        assert result.exit_code == 1
        assert "no tool at index 3" in result.output

    def test_delete(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        _create(runner, "web")
        result = runner.invoke(cli, ["profile", "delete", "web", "--yes"])
        assert result.exit_code == 0, result.output
        assert ProfileStore(cli_env).list() == []


class TestProfileInstall:
    """Tests for ``profile install`` and ``profile assign``."""

    def test_install_into_project(
        self, runner: CliRunner, cli_env: ConfigPaths, project: Path, other_project: Path
    ) -> None:
        """Installing copies the tool and registers the assignment."""
        write_command(project / ".claude" / "commands", "review")
        _create(runner, "app", "--from", str(project))

        result = runner.invoke(
            cli, ["profile", "install", "app", "--project", str(other_project), "--yes"]
        )

        assert result.exit_code == 0, result.output
        assert (other_project / ".claude" / "commands" / "review.md").is_file()
        store = ProfileStore(cli_env)
        [info] = store.registry.list_projects()
        assert info.assigned_profile_id == store.resolve("app").id

    def test_install_dry_run(
        self, runner: CliRunner, cli_env: ConfigPaths, project: Path, other_project: Path
    ) -> None:
        write_command(project / ".claude" / "commands", "review")
        _create(runner, "app", "--from", str(project))

        result = runner.invoke(
            cli, ["profile", "install", "app", "--project", str(other_project), "--dry-run"]
        )

        assert result.exit_code == 0, result.output
        assert "=== Diff Plan ===" in result.output
        assert not (other_project / ".claude").exists()

    def test_install_target_required(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        _create(runner, "web")
        result = runner.invoke(cli, ["profile", "install", "web"])
        assert result.exit_code == 2

    def test_assign_as_plugin(
        self, runner: CliRunner, cli_env: ConfigPaths, project: Path, other_project: Path
    ) -> None:
        write_command(project / ".claude" / "commands", "review")
        _create(runner, "app", "--from", str(project))

        result = runner.invoke(
            cli, ["profile", "assign", "app", "--project", str(other_project), "--yes"]
        )

        assert result.exit_code == 0, result.output
        assert "toolscope-profile-app@toolscope-profiles" in result.output
        settings = read_json(other_project / ".claude" / "settings.json")
        assert settings["enabledPlugins"] == {"toolscope-profile-app@toolscope-profiles": True}


class TestProfileUpdates:
    """Tests for ``profile check-updates`` and ``profile pull``."""

    def test_drift_then_pull(
        self, runner: CliRunner, cli_env: ConfigPaths, project: Path
    ) -> None:
        """An edited origin is reported until it is pulled."""
        write_skill(project / ".claude" / "skills", "deploy", body="One.\n")
        _create(runner, "web")
        captured = runner.invoke(
            cli,
            ["profile", "capture", "web", "skill:deploy", "--from", str(project), "--track"],
        )
        assert captured.exit_code == 0, captured.output

        in_sync = runner.invoke(cli, ["profile", "check-updates", "web"])
        assert in_sync.exit_code == 0
        assert "0 update(s)" in in_sync.output

        write_skill(project / ".claude" / "skills", "deploy", body="Two.\n")
        drifted = runner.invoke(cli, ["profile", "check-updates", "web", "--json"])
        assert drifted.exit_code == 1
        assert [u["name"] for u in json.loads(drifted.output)["updates"]] == ["deploy"]

        pulled = runner.invoke(cli, ["profile", "pull", "web", "deploy"])
        assert pulled.exit_code == 0, pulled.output
        assert "Updated deploy" in pulled.output

        again = runner.invoke(cli, ["profile", "pull", "web", "deploy"])
        assert "already up to date" in again.output


class TestProfilePlugins:
    """Tests for ``assign --user``, ``unassign``, ``uninstall-plugin`` and ``sync``."""

    def test_assign_then_unassign(
        self, runner: CliRunner, cli_env: ConfigPaths, project: Path, other_project: Path
    ) -> None:
        write_command(project / ".claude" / "commands", "review")
        _create(runner, "app", "--from", str(project))
        assigned = runner.invoke(
            cli, ["profile", "assign", "app", "--project", str(other_project), "--yes"]
        )
        assert assigned.exit_code == 0, assigned.output

        result = runner.invoke(
            cli, ["profile", "unassign", "--project", str(other_project), "--yes"]
        )

        assert result.exit_code == 0, result.output
        assert read_json(other_project / ".claude" / "settings.json") == {}
        [info] = ProfileStore(cli_env).registry.list_projects()
        assert info.assigned_profile_id is None

    def test_unassign_unregistered(
        self, runner: CliRunner, cli_env: ConfigPaths, project: Path
    ) -> None:
        result = runner.invoke(cli, ["profile", "unassign", "--project", str(project), "--yes"])
        assert result.exit_code == 2
        assert "is not a registered project" in result.output

    def test_user_plugin(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        _create(runner, "web")

        assigned = runner.invoke(cli, ["profile", "assign", "web", "--user", "--yes"])
        assert assigned.exit_code == 0, assigned.output
        settings = read_json(cli_env.user_settings_file)
        assert settings["enabledPlugins"] == {"toolscope-profile-web@toolscope-profiles": True}

        removed = runner.invoke(cli, ["profile", "uninstall-plugin", "web", "--user", "--yes"])
        assert removed.exit_code == 0, removed.output
        assert "enabledPlugins" not in read_json(cli_env.user_settings_file)

        again = runner.invoke(cli, ["profile", "uninstall-plugin", "web", "--user", "--yes"])
        assert again.exit_code == 1
        assert "is not enabled" in again.output

    def test_uninstall_target_required(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        _create(runner, "web")
        result = runner.invoke(cli, ["profile", "uninstall-plugin", "web"])
        assert result.exit_code == 2

    def test_sync_restores_installed_files(
        self, runner: CliRunner, cli_env: ConfigPaths, project: Path, other_project: Path
    ) -> None:
        write_command(project / ".claude" / "commands", "review")
        _create(runner, "app", "--from", str(project))
        installed = runner.invoke(
            cli, ["profile", "install", "app", "--project", str(other_project), "--yes"]
        )
        assert installed.exit_code == 0, installed.output
        copy = other_project / ".claude" / "commands" / "review.md"
        copy.unlink()

        preview = runner.invoke(cli, ["profile", "sync", "app", "--dry-run"])
        assert preview.exit_code == 0, preview.output
        assert "1 would sync, 0 failed" in preview.output
        assert not copy.exists()

        result = runner.invoke(cli, ["profile", "sync", "app", "--yes"])

        assert result.exit_code == 0, result.output
        assert "1 synced, 0 failed" in result.output
        assert copy.is_file()

    def test_sync_unassigned(self, runner: CliRunner, cli_env: ConfigPaths) -> None:
        _create(runner, "web")
        result = runner.invoke(cli, ["profile", "sync", "web", "--yes"])
        assert result.exit_code == 0
        assert "not assigned to any project" in result.output


class TestProfileExportImport:
    """Tests for ``profile export`` and ``profile import``."""

    def test_round_trip_under_new_name(
        self, runner: CliRunner, cli_env: ConfigPaths, project: Path, tmp_path: Path
    ) -> None:
        write_command(project / ".claude" / "commands", "review")
        _create(runner, "app", "--from", str(project))
        output = tmp_path / "app.json"

        exported = runner.invoke(cli, ["profile", "export", "app", "-o", str(output), "--yes"])
        assert exported.exit_code == 0, exported.output
        assert read_json(output)["tool_refs"] == [{"name": "review", "tool_type": "command"}]

        taken = runner.invoke(cli, ["profile", "import", str(output), "--yes"])
        assert taken.exit_code == 1
        assert "already exists" in taken.output

        imported = runner.invoke(
            cli, ["profile", "import", str(output), "--name", "app2", "--yes"]
        )
        assert imported.exit_code == 0, imported.output
        assert "Imported profile app2" in imported.output
        [ref] = ProfileStore(cli_env).resolve("app2").tool_refs
        assert ref.source_ref is None

    def test_import_malformed(
        self, runner: CliRunner, cli_env: ConfigPaths, tmp_path: Path
    ) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("{oops", encoding="utf-8")
        result = runner.invoke(cli, ["profile", "import", str(bad), "--yes"])
        assert result.exit_code == 1
        assert "not valid JSON" in result.output
