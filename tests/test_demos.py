"""Tests for the built-in demo wizards (cli/demos.py)."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Any

import pytest

from intershell.cli.demos import (
    BRANCH_PREFIXES,
    DEMOS,
    MAX_BRANCH_NAME_LENGTH,
    BranchDraft,
    branch_builder,
    log_actions,
    profile_builder,
    validate_branch_name,
)
from intershell.cli.renderers import PanelRenderer
from intershell.core.models import Action
from intershell.core.options import FrameworkOptions
from intershell.infra.interactive_cli import InteractiveCLI


async def _drive(cli: InteractiveCLI, settle: Any, framework: Any, *chunks: str) -> Any:
    task = asyncio.create_task(framework.run())
    for chunk in chunks:
        await settle()
        cli.feed(chunk)
    return await task


# ---------------------------------------------------------------------------
# Branch name rules
# ---------------------------------------------------------------------------

class TestValidateBranchName:
    @pytest.mark.parametrize(
        "name",
        ["login-form", "JIRA-123", "team/login_form", "a", "x" * MAX_BRANCH_NAME_LENGTH],
    )
    def test_valid_names(self, name: str) -> None:
        assert validate_branch_name(name).is_valid

    @pytest.mark.parametrize(
        ("name", "message"),
        [
            ("", "at least 1 character"),
            ("x" * (MAX_BRANCH_NAME_LENGTH + 1), "at most 100 characters"),
            ("login form", "can only contain"),
            ("login.form", "can only contain"),
            ("login--form", "consecutive separators"),
            ("login/_form", "consecutive separators"),
            ("-login", "start or end"),
            ("login/", "start or end"),
        ],
    )
    def test_invalid_names(self, name: str, message: str) -> None:
        result = validate_branch_name(name)
        assert not result.is_valid
        assert message in result.errors[0]

    def test_draft_branch(self) -> None:
        assert BranchDraft("feature", "login").branch == "feature/login"

    def test_prefixes(self) -> None:
        assert BRANCH_PREFIXES[0] == "feature"
        assert len(set(BRANCH_PREFIXES)) == len(BRANCH_PREFIXES)


# ---------------------------------------------------------------------------
# Branch wizard
# ---------------------------------------------------------------------------

class TestBranchWizard:
    @pytest.mark.asyncio
    async def test_happy_path(
        self, cli: InteractiveCLI, output: io.StringIO, settle: Any,
    ) -> None:
        framework = DEMOS["branch"].build(cli=cli)

        final = await _drive(cli, settle, framework, "\r", "login-form\r", "y", "x")

        assert final == BranchDraft("feature", "login-form", True)
        assert DEMOS["branch"].summarize(final) == "Branch: feature/login-form"
        assert "feature/login-form" in output.getvalue()

    @pytest.mark.asyncio
    async def test_declining_starts_over(self, cli: InteractiveCLI, settle: Any) -> None:
        framework = branch_builder().with_cli(cli).build()

        final = await _drive(
            cli,
            settle,
            framework,
            "\r",
            "login\r",
            "n",
            "\x1b[B\r",
            "\r",
            "y",
            "x",
        )

        assert final == BranchDraft("bugfix", "login", True)

    @pytest.mark.asyncio
    async def test_invalid_name_is_retyped(
        self, cli: InteractiveCLI, output: io.StringIO, settle: Any,
    ) -> None:
        framework = branch_builder().with_cli(cli).build()

        final = await _drive(
            cli, settle, framework, "\r", "bad--name\r", "good-name\r", "y", "x",
        )

        assert final.name == "good-name"
        assert "consecutive separators" in output.getvalue()

    @pytest.mark.asyncio
    async def test_exit_key_keeps_partial_draft(self, cli: InteractiveCLI, settle: Any) -> None:
        framework = branch_builder().with_cli(cli).build()

        final = await _drive(cli, settle, framework, "\x1b[B\x1b[B\r", "\x03")

        assert final == BranchDraft(prefix="fix")

    def test_plugin_contributes_panel_renderer(self, cli: InteractiveCLI) -> None:
        framework = branch_builder().with_cli(cli).build()
        assert isinstance(framework.renderers["panel"], PanelRenderer)
        assert [plugin.name for plugin in framework.get_plugins()] == ["branch-panels"]

    def test_log_actions_passes_through(self, caplog: pytest.LogCaptureFixture) -> None:
        action = Action("PING", 1)
        with caplog.at_level(logging.DEBUG, logger="intershell"):
            result = log_actions(action, None, lambda passed: ("next", passed))
        assert result == ("next", action)
        assert "dispatch PING 1" in caplog.text


# ---------------------------------------------------------------------------
# Profile wizard
# ---------------------------------------------------------------------------

class TestProfileWizard:
    @pytest.mark.asyncio
    async def test_happy_path(
        self, cli: InteractiveCLI, output: io.StringIO, settle: Any,
    ) -> None:
        framework = profile_builder().with_cli(cli).build()

        final = await _drive(cli, settle, framework, "Ada\r", "\x1b[B\x1b[B\r", "y", "x")

        assert final == {"name": "Ada", "color": "blue", "newsletter": True}
        assert "Newsletter: yes" in output.getvalue()

    def test_summary_of_empty_profile(self) -> None:
        summary = DEMOS["profile"].summarize({"name": "", "color": None, "newsletter": False})
        assert "Name:       -" in summary
        assert "Newsletter: no" in summary


class TestRegistry:
    def test_demo_names(self) -> None:
        assert sorted(DEMOS) == ["branch", "profile"]
        assert all(demo.description for demo in DEMOS.values())

    def test_build_applies_options(self, cli: InteractiveCLI) -> None:
        framework = DEMOS["profile"].build(FrameworkOptions(debug=True), cli=cli)
        assert framework.options.debug is True
        assert framework.cli is cli
