"""Tests for the immutable framework builder (builder.py)."""

from __future__ import annotations

from typing import Any

import pytest

from intershell.builder import FrameworkBuilder, create_framework, create_simple_framework
from intershell.core.models import Action, NextPage
from intershell.core.options import FrameworkOptions
from intershell.core.pages import FunctionalPage, PageBuilder
from intershell.core.plugins import PluginDefinition
from intershell.exceptions import ConfigurationError, ContractError, DuplicatePageError
from intershell.framework import Framework


async def _render_nothing(cli: Any, state: Any) -> None:
    return None


def _page(page_id: str) -> FunctionalPage:
    return (
        PageBuilder.create(page_id, page_id.title())
        .render(_render_nothing)
        .handle_key(lambda key, state: None)
        .get_next_action(lambda state: NextPage())
        .build()
    )


def _ready(**state: Any) -> FrameworkBuilder:
    return create_framework().with_initial_state(state or {"step": 0}).with_page(_page("a"))


class TestImmutability:
    def test_with_methods_return_new_builders(self) -> None:
        base = create_framework()
        with_state = base.with_initial_state({"x": 1})
        assert with_state is not base
        with pytest.raises(ConfigurationError, match="Initial state"):
            base.with_page(_page("a")).build()

    def test_branches_do_not_share_pages(self) -> None:
        base = _ready()
        left = base.with_page(_page("left"))
        right = base.with_page(_page("right"))
        assert [page.id for page in left.config.pages] == ["a", "left"]
        assert [page.id for page in right.config.pages] == ["a", "right"]
        assert [page.id for page in base.config.pages] == ["a"]

    def test_initial_state_is_copied(self) -> None:
        state = {"items": [1]}
        builder = create_framework().with_initial_state(state).with_page(_page("a"))
        state["items"].append(2)
        assert builder.config.initial_state == {"items": [1]}

    def test_clone_deep_copies_state(self) -> None:
        builder = _ready(items=[1])
        clone = builder.clone()
        clone.config.initial_state["items"].append(99)
        assert builder.config.initial_state == {"items": [1]}

    def test_reset_clears_everything(self) -> None:
        assert _ready().with_debug().reset().config == create_framework().config

    def test_built_frameworks_do_not_share_state(self) -> None:
        builder = _ready(items=[])
        first, second = builder.build(), builder.build()
        first.state["items"].append("x")
        assert second.state == {"items": []}


class TestOptions:
    def test_convenience_setters(self) -> None:
        options = (
            _ready()
            .with_debug()
            .with_log_level("warn")
            .with_hotkeys(False)
            .with_history(True, max_size=5)
            .with_render_mode("throttled", 0.2)
            .config.options
        )
        assert options.debug is True
        assert options.log_level == "warn"
        assert options.enable_hotkeys is False
        assert options.max_history_size == 5
        assert (options.render_mode, options.render_delay) == ("throttled", 0.2)

    def test_with_options_replaces_or_merges(self) -> None:
        replaced = _ready().with_options(FrameworkOptions(debug=True)).config.options
        merged = _ready().with_debug().with_options(enable_history=False).config.options
        assert replaced.debug is True
        assert (merged.debug, merged.enable_history) == (True, False)

    def test_unknown_option_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="colour"):
            _ready().with_options(colour="red")

    @pytest.mark.parametrize(
        "changes",
        [
            {"log_level": "loud"},
            {"render_mode": "lazy"},
            {"render_delay": -1},
            {"max_history_size": 0},
        ],
    )
    def test_invalid_values_are_rejected(self, changes: dict[str, Any]) -> None:
        with pytest.raises(ConfigurationError):
            _ready().with_options(**changes)

    def test_debug_forces_debug_log_level(self) -> None:
        import logging

        assert FrameworkOptions(debug=True, log_level="error").effective_log_level == logging.DEBUG
        assert FrameworkOptions(log_level="warn").effective_log_level == logging.WARNING


class TestBuild:
    def test_requires_pages(self) -> None:
        with pytest.raises(ConfigurationError, match="page"):
            create_framework().with_initial_state({}).build()

    def test_duplicate_page_ids_fail_at_build(self) -> None:
        builder = _ready().with_page(_page("a"))
        with pytest.raises(DuplicatePageError):
            builder.build()

    def test_malformed_page_fails_at_build(self) -> None:
        class Half:
            id = "half"
            title = "Half"

            async def render(self, cli: Any, state: Any) -> None:
                return None

        with pytest.raises(ContractError, match="handle_key"):
            _ready().with_page(Half()).build()  # type: ignore[arg-type]

    def test_malformed_plugin_fails_at_build(self) -> None:
        with pytest.raises(ContractError, match="version"):
            _ready().with_plugin(PluginDefinition(name="p", version="")).build()

    def test_build_wires_reducers_middleware_and_plugins(self) -> None:
        seen: list[str] = []

        def inc(state: dict[str, int], action: Action) -> dict[str, int]:
            return {"step": state["step"] + 1} if action.type == "INC" else state

        def spy(action: Action, state: Any, next_: Any) -> Any:
            seen.append(action.type)
            return next_(action)

        framework = (
            _ready()
            .with_reducer("inc", inc)
            .with_middleware_function(spy)
            .with_plugin(PluginDefinition(name="p", version="1"))
            .build()
        )
        framework.dispatch(Action("INC"))

        assert isinstance(framework, Framework)
        assert framework.state == {"step": 1}
        assert seen == ["INC"]
        assert [plugin.name for plugin in framework.get_plugins()] == ["p"]

    def test_later_reducer_with_same_name_wins(self) -> None:
        framework = (
            _ready()
            .with_reducers({"r": lambda s, a: {"step": 1}})
            .with_reducer("r", lambda s, a: {"step": 2})
            .build()
        )
        framework.dispatch(Action("ANY"))
        assert framework.state == {"step": 2}

    def test_create_simple_framework(self) -> None:
        framework = create_simple_framework({"step": 0}, [_page("a"), _page("b")])
        assert framework.page_ids == ("a", "b")
        assert framework.state == {"step": 0}
