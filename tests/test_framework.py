"""Tests for the run loop and public surface of Framework (framework.py).

Frameworks run against the ``cli`` fixture (non-TTY streams); keys are
injected with ``cli.feed`` while ``run()`` is awaited in a task.
"""

from __future__ import annotations

import asyncio
import io
import os
import signal
import sys
from collections.abc import Callable
from typing import Any

import pytest

from intershell.builder import FrameworkBuilder, create_framework
from intershell.core.events import ErrorEvent, FrameworkEvent, PageEvent
from intershell.core.keys import KeyPress
from intershell.core.models import (
    Action,
    ChangePage,
    Custom,
    Exit,
    NextPage,
    PageAction,
    PrevPage,
    ValidationResult,
)
from intershell.core.pages import FunctionalPage
from intershell.core.plugins import PluginDefinition
from intershell.exceptions import ContractError, FrameworkStateError, NavigationError
from intershell.framework import Framework
from intershell.infra.interactive_cli import InteractiveCLI, wait_for_enter


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

def _recorder(log: list[str], page_id: str, result: Action | None = None) -> Any:
    async def render(cli: Any, state: Any) -> Action | None:
        log.append(page_id)
        return result

    return render


def _sequence(*actions: PageAction) -> Callable[[Any], PageAction]:
    """Return the given page actions one per call, repeating the last."""
    remaining = list(actions)

    def next_action(state: Any) -> PageAction:
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    return next_action


def _page(page_id: str, log: list[str] | None = None, **fields: Any) -> FunctionalPage:
    if log is not None and "render_fn" not in fields:
        fields["render_fn"] = _recorder(log, page_id)
    return FunctionalPage(id=page_id, title=f"{page_id.upper()} page", **fields)


async def _wait_enter(cli: Any, state: Any) -> None:
    await wait_for_enter(cli)


def _collector(state: dict[str, Any], action: Action) -> dict[str, Any]:
    if action.type == "KEY":
        return {**state, "keys": [*state.get("keys", []), action.payload]}
    if action.type == "INC":
        return {**state, "count": state.get("count", 0) + 1}
    return state


def _builder(cli: InteractiveCLI, *pages: FunctionalPage, state: Any = None) -> FrameworkBuilder:
    return (
        create_framework()
        .with_initial_state({"step": 0} if state is None else state)
        .with_pages(pages)
        .with_reducer("collector", _collector)
        .with_cli(cli)
    )


# ---------------------------------------------------------------------------
# Run loop
# ---------------------------------------------------------------------------

class TestRunLoop:
    @pytest.mark.asyncio
    async def test_two_page_scenario(self, cli: InteractiveCLI) -> None:
        log: list[str] = []
        framework = _builder(
            cli,
            _page("a", log, next_action_fn=lambda state: NextPage()),
            _page("b", log, next_action_fn=lambda state: Exit()),
        ).build()
        history_lengths: list[int] = []
        framework.on(
            FrameworkEvent.NAVIGATION_CHANGE,
            lambda event: history_lengths.append(len(framework.history)),
        )

        final = await framework.run()

        assert final == {"step": 0}
        assert log == ["a", "b"]
        assert history_lengths == [1, 2]

    @pytest.mark.asyncio
    async def test_next_past_last_page_ends_run(self, cli: InteractiveCLI) -> None:
        log: list[str] = []
        framework = _builder(cli, _page("only", log)).build()
        assert await framework.run() == {"step": 0}
        assert log == ["only"]

    @pytest.mark.asyncio
    async def test_render_result_action_is_dispatched(self, cli: InteractiveCLI) -> None:
        log: list[str] = []
        page = _page("a", render_fn=_recorder(log, "a", Action("INC")), next_action_fn=lambda s: Exit())
        framework = _builder(cli, page).build()
        assert await framework.run() == {"step": 0, "count": 1}

    @pytest.mark.asyncio
    async def test_next_page_skips_skippable_pages(self, cli: InteractiveCLI) -> None:
        log: list[str] = []
        framework = _builder(
            cli,
            _page("a", log),
            _page("b", log, can_skip=lambda state: True),
            _page("c", log),
        ).build()
        await framework.run()
        assert log == ["a", "c"]

    @pytest.mark.asyncio
    async def test_failed_validation_rerenders(self, cli: InteractiveCLI, output: io.StringIO) -> None:
        log: list[str] = []

        def validate(state: dict[str, Any]) -> ValidationResult:
            if state.get("count", 0) < 2:
                return ValidationResult.fail("Need two attempts")
            return ValidationResult.ok()

        framework = _builder(
            cli,
            _page("a", render_fn=_recorder(log, "a", Action("INC")), validate=validate),
            _page("b", log, next_action_fn=lambda s: Exit()),
        ).build()

        final = await framework.run()

        assert log == ["a", "a", "b"]
        assert final["count"] == 2
        assert "Need two attempts" in output.getvalue()

    @pytest.mark.asyncio
    async def test_prev_page_uses_history(self, cli: InteractiveCLI) -> None:
        log: list[str] = []
        framework = _builder(
            cli,
            _page("a", log),
            _page("b", log, next_action_fn=_sequence(PrevPage(), Exit())),
        ).build()
        await framework.run()
        assert log == ["a", "b", "a", "b"]

    @pytest.mark.asyncio
    async def test_prev_page_on_first_page_rerenders(self, cli: InteractiveCLI) -> None:
        log: list[str] = []
        framework = _builder(cli, _page("a", log, next_action_fn=_sequence(PrevPage(), Exit()))).build()
        await framework.run()
        assert log == ["a", "a"]

    @pytest.mark.asyncio
    async def test_change_page_and_rerender(self, cli: InteractiveCLI) -> None:
        log: list[str] = []
        framework = _builder(
            cli,
            _page("a", log, next_action_fn=lambda s: ChangePage("c")),
            _page("b", log),
            _page("c", log, next_action_fn=_sequence(ChangePage("c"), Exit())),
        ).build()
        await framework.run()
        assert log == ["a", "c", "c"]

    @pytest.mark.asyncio
    async def test_custom_dispatches_and_stays(self, cli: InteractiveCLI) -> None:
        log: list[str] = []
        framework = _builder(
            cli,
            _page("a", log, next_action_fn=_sequence(Custom(Action("INC")), Exit())),
        ).build()
        final = await framework.run()
        assert log == ["a", "a"]
        assert final["count"] == 1

    @pytest.mark.asyncio
    async def test_unknown_target_raises_navigation_error(self, cli: InteractiveCLI) -> None:
        errors: list[ErrorEvent] = []
        framework = _builder(cli, _page("a", [], next_action_fn=lambda s: ChangePage("nowhere"))).build()
        framework.on(FrameworkEvent.ERROR, errors.append)

        with pytest.raises(NavigationError):
            await framework.run()

        assert isinstance(errors[0].error, NavigationError)
        assert not cli.in_session

    @pytest.mark.asyncio
    async def test_non_page_action_is_a_contract_error(self, cli: InteractiveCLI) -> None:
        framework = _builder(cli, _page("a", [], next_action_fn=lambda s: "NEXT")).build()
        with pytest.raises(ContractError):
            await framework.run()

    @pytest.mark.asyncio
    async def test_page_render_events(self, cli: InteractiveCLI) -> None:
        rendered: list[str] = []
        framework = _builder(cli, _page("a", []), _page("b", [])).build()
        framework.on(FrameworkEvent.PAGE_RENDER, lambda event: rendered.append(event.page_id))
        await framework.run()
        assert rendered == ["a", "b"]


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:
    @pytest.mark.asyncio
    async def test_framework_is_single_use(self, cli: InteractiveCLI) -> None:
        framework = _builder(cli, _page("a", [])).build()
        await framework.run()
        with pytest.raises(FrameworkStateError):
            await framework.run()

    @pytest.mark.asyncio
    async def test_concurrent_run_is_rejected(self, cli: InteractiveCLI, settle: Any) -> None:
        framework = _builder(cli, _page("a", render_fn=_wait_enter)).build()
        task = asyncio.create_task(framework.run())
        await settle()
        assert framework.is_running

        with pytest.raises(FrameworkStateError, match="already running"):
            await framework.run()

        cli.feed("\r")
        await task
        assert not framework.is_running

    @pytest.mark.asyncio
    async def test_stop_returns_current_state(self, cli: InteractiveCLI, settle: Any) -> None:
        framework = _builder(cli, _page("a", render_fn=_wait_enter), state={"step": 3}).build()
        task = asyncio.create_task(framework.run())
        await settle()

        framework.stop()

        assert await task == {"step": 3}
        assert cli.pending_count == 0
        assert not cli.in_session

    @pytest.mark.asyncio
    async def test_stop_signals_are_routed_and_removed(
        self, cli: InteractiveCLI, settle: Any, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        loop = asyncio.get_running_loop()
        added: dict[signal.Signals, Callable[[], None]] = {}
        removed: list[signal.Signals] = []
        monkeypatch.setattr(
            loop, "add_signal_handler", lambda sig, callback: added.setdefault(sig, callback),
        )
        monkeypatch.setattr(loop, "remove_signal_handler", removed.append)

        framework = _builder(cli, _page("a", render_fn=_wait_enter), state={"step": 4}).build()
        task = asyncio.create_task(framework.run())
        await settle()
        assert cli.pending_count == 1

        added[signal.SIGTERM]()

        assert await task == {"step": 4}
        assert cli.pending_count == 0
        assert not cli.in_session
        assert removed == list(added)
        assert signal.SIGINT in added

    @pytest.mark.asyncio
    async def test_disabled_signal_handling_installs_nothing(
        self, cli: InteractiveCLI, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        loop = asyncio.get_running_loop()
        added: list[signal.Signals] = []
        monkeypatch.setattr(loop, "add_signal_handler", lambda sig, callback: added.append(sig))

        framework = Framework({"step": 0}, [_page("a", [])], cli=cli, handle_signals=False)
        await framework.run()

        assert added == []

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals only")
    @pytest.mark.asyncio
    async def test_real_sigterm_stops_the_run(self, cli: InteractiveCLI, settle: Any) -> None:
        previous = signal.getsignal(signal.SIGTERM)
        framework = _builder(cli, _page("a", render_fn=_wait_enter), state={"step": 9}).build()
        task = asyncio.create_task(framework.run())
        await settle()
        if signal.getsignal(signal.SIGTERM) == previous:
            framework.stop()
            await task
            pytest.skip("event loop cannot install signal handlers here")

        os.kill(os.getpid(), signal.SIGTERM)

        assert await asyncio.wait_for(task, timeout=5) == {"step": 9}
        assert cli.pending_count == 0

    @pytest.mark.asyncio
    async def test_run_after_stop_is_rejected(self, cli: InteractiveCLI) -> None:
        framework = _builder(cli, _page("a", [])).build()
        framework.stop()
        with pytest.raises(FrameworkStateError, match="stopped"):
            await framework.run()

    @pytest.mark.asyncio
    async def test_async_plugin_hooks_settle_before_first_render(self, cli: InteractiveCLI) -> None:
        log: list[str] = []

        async def install(framework: Any) -> None:
            log.append("installed")

        framework = (
            _builder(cli, _page("a", log))
            .with_plugin(PluginDefinition(name="p", version="1", on_install=install))
            .build()
        )
        await framework.run()
        assert log == ["installed", "a"]

    def test_cleanup_drops_listeners_and_is_idempotent(self, cli: InteractiveCLI) -> None:
        framework = _builder(cli, _page("a", [])).build()
        seen: list[Any] = []
        framework.subscribe(lambda new, old: seen.append(new))
        framework.on(FrameworkEvent.STATE_CHANGE, seen.append)

        framework.cleanup()
        framework.cleanup()
        framework.dispatch(Action("INC"))

        assert seen == []
        assert framework.events.listener_count(FrameworkEvent.STATE_CHANGE) == 0


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

def _key_action(key: KeyPress, state: Any) -> Action | None:
    if key.name == "return":
        return None
    return Action("KEY", key.name)


class TestKeys:
    @pytest.mark.asyncio
    async def test_keys_go_to_active_page(self, cli: InteractiveCLI, settle: Any) -> None:
        framework = _builder(cli, _page("a", render_fn=_wait_enter, handle_key_fn=_key_action)).build()
        task = asyncio.create_task(framework.run())
        await settle()

        cli.feed("ab\r")

        final = await task
        assert final["keys"] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_exit_key_stops_run(self, cli: InteractiveCLI, settle: Any) -> None:
        framework = _builder(cli, _page("a", render_fn=_wait_enter, handle_key_fn=_key_action)).build()
        task = asyncio.create_task(framework.run())
        await settle()

        cli.feed("x\x03")

        final = await task
        assert final["keys"] == ["x"]
        assert not cli.in_session

    @pytest.mark.asyncio
    async def test_exit_key_ignored_when_hotkeys_disabled(
        self, cli: InteractiveCLI, settle: Any,
    ) -> None:
        framework = (
            _builder(cli, _page("a", render_fn=_wait_enter, handle_key_fn=_key_action))
            .with_hotkeys(False)
            .build()
        )
        task = asyncio.create_task(framework.run())
        await settle()

        cli.feed("\x03")
        await settle()
        assert not task.done()

        cli.feed("\r")
        final = await task
        assert final["keys"] == ["c"]

    @pytest.mark.asyncio
    async def test_help_key_prints_page_help(
        self, cli: InteractiveCLI, output: io.StringIO, settle: Any,
    ) -> None:
        page = _page("a", render_fn=_wait_enter, description="Press enter to go on")
        framework = _builder(cli, page).build()
        task = asyncio.create_task(framework.run())
        await settle()

        cli.feed("\x1bOP")
        cli.feed("\r")
        await task

        text = output.getvalue()
        assert "A page" in text
        assert "Press enter to go on" in text
        assert "ctrl+c" in text


# ---------------------------------------------------------------------------
# Hooks, renderers, navigation API
# ---------------------------------------------------------------------------

class TestHooks:
    @pytest.mark.asyncio
    async def test_callbacks_run_in_lifecycle_order(self, cli: InteractiveCLI) -> None:
        calls: list[str] = []
        framework = _builder(cli, _page("a", calls), _page("b", calls)).build()

        async def after(page: Any) -> None:
            calls.append(f"after:{page.id}")

        framework.on_page_enter("a", lambda state: calls.append("enter:a"))
        framework.on_page_exit("a", lambda state: calls.append("exit:a"))
        framework.on_page_enter("b", lambda state: calls.append("enter:b"))
        framework.on_before_render(lambda page: calls.append(f"before:{page.id}"))
        framework.on_after_render(after)

        await framework.run()

        assert calls == [
            "enter:a",
            "before:a",
            "a",
            "after:a",
            "exit:a",
            "enter:b",
            "before:b",
            "b",
            "after:b",
        ]

    @pytest.mark.asyncio
    async def test_matching_renderer_replaces_page_render(self, cli: InteractiveCLI) -> None:
        log: list[str] = []

        class OnlyB:
            name = "only-b"

            def can_render(self, page: Any) -> bool:
                return page.id == "b"

            async def render(self, page: Any, state: Any, cli: Any) -> None:
                log.append(f"renderer:{page.id}")

        framework = (
            _builder(cli, _page("a", log), _page("b", log))
            .with_plugin(PluginDefinition(name="r", version="1", renderers=(OnlyB(),)))
            .build()
        )
        await framework.run()
        assert log == ["a", "renderer:b"]


class TestStateAndNavigationApi:
    def test_dispatch_and_subscribe(self, cli: InteractiveCLI) -> None:
        framework = _builder(cli, _page("a", [])).build()
        seen: list[Any] = []
        framework.subscribe(lambda new, old: seen.append(new))
        framework.dispatch(Action("INC"))
        assert framework.get_state() == {"step": 0, "count": 1}
        assert seen == [{"step": 0, "count": 1}]

    @pytest.mark.asyncio
    async def test_navigate_and_go_back(self, cli: InteractiveCLI) -> None:
        framework = _builder(cli, _page("a", []), _page("b", [])).build()
        await framework.navigation.start()
        framework.dispatch(Action("INC"))
        await framework.navigate_to("b")
        framework.dispatch(Action("INC"))

        entry = await framework.go_back()

        assert entry.page_id == "a"
        assert framework.get_current_page() is framework.get_page("a")
        assert framework.state == {"step": 0, "count": 1}

        await framework.go_forward()
        assert framework.state == {"step": 0, "count": 2}

    def test_event_helpers_validate_names(self, cli: InteractiveCLI) -> None:
        framework = _builder(cli, _page("a", [])).build()
        seen: list[PageEvent] = []
        framework.once(FrameworkEvent.PAGE_ENTER, seen.append)
        framework.emit(FrameworkEvent.PAGE_ENTER, PageEvent("a", {}))
        framework.emit(FrameworkEvent.PAGE_ENTER, PageEvent("a", {}))
        assert len(seen) == 1
