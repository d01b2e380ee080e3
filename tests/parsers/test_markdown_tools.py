"""Tests for the skill, command and agent parsers.

Verifies:
    - Skills are read from ``<dir>/SKILL.md`` frontmatter.
    - A skill missing a required field is skipped with a warning.
    - Command names come from the file stem, frontmatter optional.
    - Agent tool lists accept comma-separated strings.
    - Broken YAML never aborts the rest of the directory.
"""

from __future__ import annotations

from pathlib import Path

from toolscope.core.integrity import hash_directory
from toolscope.core.scope import Scope
from toolscope.parsers.base import ToolKind
from toolscope.parsers.frontmatter import render_frontmatter, split_frontmatter, string_list
from toolscope.parsers.markdown_tools import AgentParser, CommandParser, SkillParser
from tests.helpers import write_agent, write_command, write_skill


class TestSkillParser:
    """Tests for ``SkillParser``."""

    def test_parses_skill_directory(self, tmp_path: Path) -> None:
        """A SKILL.md with name and description yields one record."""
        skill_dir = write_skill(tmp_path, "deploy", "Ship the app")
        (skill_dir / "run.sh").write_text("echo hi\n", encoding="utf-8")

        outcome = SkillParser().parse(tmp_path, Scope.user())

        assert outcome.warnings == []
        [record] = outcome.records
        assert record.name == "deploy"
        assert record.kind is ToolKind.SKILL
        assert record.description == "Ship the app"
        assert record.path == skill_dir
        assert record.sha256 == hash_directory(skill_dir)
        assert record.metadata["user_invocable"] is True

    def test_name_from_frontmatter_not_directory(self, tmp_path: Path) -> None:
        """The frontmatter name wins over the directory name."""
        write_skill(tmp_path, "release", dirname="release-v2")
        [record] = SkillParser().parse(tmp_path, Scope.project()).records
        assert record.name == "release"

    def test_missing_description_warns(self, tmp_path: Path) -> None:
        """A skill without a description is skipped and reported."""
        bad = tmp_path / "broken"
        bad.mkdir()
        (bad / "SKILL.md").write_text("---\nname: broken\n---\nbody\n", encoding="utf-8")
        write_skill(tmp_path, "good")

        outcome = SkillParser().parse(tmp_path, Scope.user())

        assert [r.name for r in outcome.records] == ["good"]
        assert len(outcome.warnings) == 1
        assert "description" in outcome.warnings[0].message
        assert outcome.warnings[0].error == "ParseError"

    def test_directory_without_skill_file_ignored(self, tmp_path: Path) -> None:
        """Directories without SKILL.md are not skills and not warnings."""
        (tmp_path / "notes").mkdir()
        outcome = SkillParser().parse(tmp_path, Scope.user())
        assert outcome.records == []
        assert outcome.warnings == []

    def test_missing_directory_is_empty(self, tmp_path: Path) -> None:
        """Scanning a path that does not exist is not an error."""
        outcome = SkillParser().parse(tmp_path / "absent", Scope.user())
        assert outcome.records == [] and outcome.warnings == []


class TestCommandParser:
    """Tests for ``CommandParser``."""

    def test_name_from_stem(self, tmp_path: Path) -> None:
        """Commands are named after their file."""
        write_command(tmp_path, "review", description="Review a PR")
        write_command(tmp_path, "plain")

        records = CommandParser().parse(tmp_path, Scope.user()).records

        assert [r.name for r in records] == ["plain", "review"]
        assert records[0].description is None
        assert records[1].description == "Review a PR"
        assert records[1].sha256.startswith("sha256:")

    def test_bad_yaml_skipped(self, tmp_path: Path) -> None:
        """Invalid frontmatter skips that command only."""
        tmp_path.joinpath("bad.md").write_text("---\nkey: [unclosed\n---\nx\n", encoding="utf-8")
        write_command(tmp_path, "ok")

        outcome = CommandParser().parse(tmp_path, Scope.project())

        assert [r.name for r in outcome.records] == ["ok"]
        assert "invalid YAML" in outcome.warnings[0].message


class TestAgentParser:
    """Tests for ``AgentParser``."""

    def test_agent_fields(self, tmp_path: Path) -> None:
        """Agent metadata carries the tool list and permission mode."""
        write_agent(tmp_path, "reviewer", "Reviews code", tools="Read, Grep, Glob")

        [record] = AgentParser().parse(tmp_path, Scope.user()).records

        assert record.name == "reviewer"
        assert record.kind is ToolKind.AGENT
        assert record.metadata["tools"] == ["Read", "Grep", "Glob"]
        assert record.metadata["permission_mode"] == "default"

    def test_agent_without_frontmatter_warns(self, tmp_path: Path) -> None:
        """Agents must declare frontmatter."""
        tmp_path.joinpath("loose.md").write_text("Just text\n", encoding="utf-8")
        outcome = AgentParser().parse(tmp_path, Scope.user())
        assert outcome.records == []
        assert "frontmatter" in outcome.warnings[0].message


class TestFrontmatter:
    """Tests for the frontmatter helpers."""

    def test_no_block(self) -> None:
        """Text without a leading ``---`` has no frontmatter."""
        assert split_frontmatter("# Title\n") == (None, "# Title\n")

    def test_render_then_split(self) -> None:
        """Rendered documents split back into the same mapping and body."""
        text = render_frontmatter({"name": "x", "description": "y"}, "Body\n")
        data, body = split_frontmatter(text)
        assert data == {"name": "x", "description": "y"}
        assert body == "\nBody\n"

    def test_string_list(self) -> None:
        """Lists and comma strings normalize the same way."""
        assert string_list("a, b,,c") == ["a", "b", "c"]
        assert string_list(["a", " b "]) == ["a", "b"]
        assert string_list(None) == []
