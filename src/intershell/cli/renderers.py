"""Renderers contributed to the framework by plugins."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from intershell.core.models import Action
from intershell.core.protocols import KeyEventSource, Page
from intershell.exceptions import EnvironmentError


def _import_rich_panel() -> type[Any]:
    try:
        from rich.panel import Panel
    except ModuleNotFoundError as exc:
        raise EnvironmentError(
            "rich is not installed. Install with: pip install rich",
        ) from exc
    return Panel


class PanelRenderer:
    """Clear the screen and frame the page title in a Rich panel.

    The page's own ``render`` runs afterwards and does the rest, so it
    must not clear the screen itself.  Build factory pages from
    :mod:`intershell.cli.pages` with ``clear_screen=False`` to keep the
    panel visible.

    Parameters
    ----------
    page_ids:
        Pages this renderer handles; ``None`` means every page.
    border_style:
        Rich style of the panel border.
    """

    name: str = "panel"

    def __init__(
        self,
        page_ids: Iterable[str] | None = None,
        *,
        border_style: str = "cyan",
    ) -> None:
        self._page_ids: frozenset[str] | None = (
            frozenset(page_ids) if page_ids is not None else None
        )
        self._border_style = border_style

    def can_render(self, page: Page) -> bool:
        return self._page_ids is None or page.id in self._page_ids

    async def render(self, page: Page, state: Any, cli: KeyEventSource) -> Action | None:
        panel_class = _import_rich_panel()
        icon = getattr(page, "icon", None)
        title = f"{icon} {page.title}" if icon else page.title
        body = getattr(page, "description", None) or ""

        cli.clear_screen()
        cli.print(
            panel_class(
                body,
                title=f"[bold]{title}[/bold]",
                title_align="left",
                border_style=self._border_style,
            ),
        )
        return await page.render(cli, state)
