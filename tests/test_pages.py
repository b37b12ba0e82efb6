"""Tests for the ready-made page factories (cli/pages.py)."""

from __future__ import annotations

import asyncio
import io
from typing import Any

import pytest

from intershell.builder import create_framework
from intershell.cli.pages import (
    create_confirm_page,
    create_info_page,
    create_input_page,
    create_select_page,
)
from intershell.cli.renderers import PanelRenderer
from intershell.core.models import ValidationResult
from intershell.core.plugins import PluginDefinition
from intershell.core.reducers import field_reducer
from intershell.infra.interactive_cli import InteractiveCLI


async def _run(
    cli: InteractiveCLI,
    settle: Any,
    state: Any,
    pages: list[Any],
    *chunks: str,
    plugins: tuple[Any, ...] = (),
) -> Any:
    builder = (
        create_framework()
        .with_initial_state(state)
        .with_pages(pages)
        .with_reducer("fields", field_reducer)
        .with_cli(cli)
    )
    for plugin in plugins:
        builder = builder.with_plugin(plugin)
    framework = builder.build()
    task = asyncio.create_task(framework.run())
    for chunk in chunks:
        await settle()
        cli.feed(chunk)
    return await task


def _lowercase(value: str) -> ValidationResult:
    if value != value.lower():
        return ValidationResult.fail("Use lowercase only")
    return ValidationResult.ok()


class TestInputPage:
    @pytest.mark.asyncio
    async def test_stores_typed_value(
        self, cli: InteractiveCLI, output: io.StringIO, settle: Any,
    ) -> None:
        page = create_input_page("name", "Your name", "What should we call you?", field="name")

        final = await _run(cli, settle, {"name": ""}, [page], "Ada\r")

        assert final == {"name": "Ada"}
        text = output.getvalue()
        assert "Your name" in text
        assert "What should we call you?" in text
        assert "─" * 50 in text

    @pytest.mark.asyncio
    async def test_existing_value_is_default(self, cli: InteractiveCLI, settle: Any) -> None:
        page = create_input_page("name", "Name", "Name?", field="name")
        final = await _run(cli, settle, {"name": "Grace"}, [page], "\r")
        assert final == {"name": "Grace"}

    @pytest.mark.asyncio
    async def test_validator_applies_while_typing(
        self, cli: InteractiveCLI, output: io.StringIO, settle: Any,
    ) -> None:
        page = create_input_page("slug", "Slug", "Slug?", field="slug", validator=_lowercase)

        final = await _run(cli, settle, {"slug": ""}, [page], "ABC\r", "abc\r")

        assert final == {"slug": "abc"}
        assert "Use lowercase only" in output.getvalue()

    def test_validator_becomes_page_validate(self) -> None:
        page = create_input_page("slug", "Slug", "Slug?", field="slug", validator=_lowercase)
        assert page.validate is not None
        assert not page.validate({"slug": "ABC"}).is_valid
        assert page.validate({"slug": "abc"}).is_valid

    def test_without_validator_no_validate(self) -> None:
        page = create_input_page("name", "Name", "Name?", field="name")
        assert page.validate is None
        assert page.description == "Name?"


class TestSelectPage:
    @pytest.mark.asyncio
    async def test_stores_single_choice(self, cli: InteractiveCLI, settle: Any) -> None:
        page = create_select_page("color", "Color", "Pick one:", ["red", "green"], field="color")
        final = await _run(cli, settle, {"color": None}, [page], "\x1b[B\r")
        assert final == {"color": "green"}

    @pytest.mark.asyncio
    async def test_stores_list_when_multiple(self, cli: InteractiveCLI, settle: Any) -> None:
        page = create_select_page(
            "colors", "Colors", "Pick some:", ["red", "green", "blue"], field="colors", multiple=True,
        )
        final = await _run(cli, settle, {"colors": []}, [page], " \x1b[B\x1b[B \r")
        assert final == {"colors": ["red", "blue"]}


class TestConfirmPage:
    @pytest.mark.asyncio
    async def test_stores_answer(self, cli: InteractiveCLI, settle: Any) -> None:
        page = create_confirm_page("ok", "Confirm", "Proceed?", field="ok")
        final = await _run(cli, settle, {"ok": False}, [page], "y")
        assert final == {"ok": True}

    @pytest.mark.asyncio
    async def test_return_uses_default(self, cli: InteractiveCLI, settle: Any) -> None:
        page = create_confirm_page("ok", "Confirm", "Proceed?", field="ok", default=True)
        final = await _run(cli, settle, {"ok": False}, [page], "\r")
        assert final == {"ok": True}


class TestInfoPage:
    @pytest.mark.asyncio
    async def test_static_content(
        self, cli: InteractiveCLI, output: io.StringIO, settle: Any,
    ) -> None:
        page = create_info_page("about", "About", "Nothing to see here")
        final = await _run(cli, settle, {}, [page], "x")
        assert final == {}
        assert "Nothing to see here" in output.getvalue()
        assert "Press any key to continue..." in output.getvalue()

    @pytest.mark.asyncio
    async def test_content_from_state(
        self, cli: InteractiveCLI, output: io.StringIO, settle: Any,
    ) -> None:
        page = create_info_page("hello", "Hello", lambda state: f"Hello, {state['name']}!")
        await _run(cli, settle, {"name": "Ada"}, [page], "\r")
        assert "Hello, Ada!" in output.getvalue()


class TestWizard:
    @pytest.mark.asyncio
    async def test_pages_chain_into_one_state(self, cli: InteractiveCLI, settle: Any) -> None:
        pages = [
            create_input_page("name", "Name", "Name?", field="name"),
            create_select_page("color", "Color", "Color?", ["red", "green"], field="color"),
            create_confirm_page("news", "News", "Newsletter?", field="news"),
            create_info_page("done", "Done", "Thanks"),
        ]

        final = await _run(
            cli,
            settle,
            {"name": "", "color": None, "news": False},
            pages,
            "Lin\r",
            "\x1b[B\r",
            "y",
            " ",
        )

        assert final == {"name": "Lin", "color": "green", "news": True}


class TestPanelRendering:
    def _panels(self) -> PluginDefinition:
        return PluginDefinition(name="panels", version="1.0.0", renderers=(PanelRenderer(),))

    @pytest.mark.asyncio
    async def test_panel_survives_when_page_does_not_clear(
        self, cli: InteractiveCLI, output: io.StringIO, settle: Any,
    ) -> None:
        page = create_input_page(
            "name", "Your name", "What should we call you?", field="name", clear_screen=False,
        )

        final = await _run(cli, settle, {"name": ""}, [page], "Ada\r", plugins=(self._panels(),))

        assert final == {"name": "Ada"}
        text = output.getvalue()
        assert text.count("\x1b[2J") == 1
        assert text.index("\x1b[2J") < text.index("╭") < text.rindex("╰")
        assert text.rindex("╰") < text.index("\n" + "─" * 50 + "\n")

    @pytest.mark.asyncio
    async def test_factory_clears_by_default(
        self, cli: InteractiveCLI, output: io.StringIO, settle: Any,
    ) -> None:
        page = create_info_page("about", "About", "Nothing to see here")
        await _run(cli, settle, {}, [page], "x", plugins=(self._panels(),))
        assert output.getvalue().count("\x1b[2J") == 2
