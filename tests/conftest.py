"""Shared pytest fixtures for the intershell test suite.

Guidelines
----------
* No real terminal: every CLI is built on non-TTY ``io.StringIO``
  streams, so raw mode and the stdin reader are never engaged.
* Keys are injected with ``InteractiveCLI.feed``.
* Each CLI gets its own ownership record so tests never contend for
  the process-wide one.
* The ``intershell`` logger is restored after every test, since
  ``main()`` installs a non-propagating handler that hides records
  from ``caplog``.
"""

from __future__ import annotations

import asyncio
import io
import logging
from collections.abc import Awaitable, Callable, Iterator

import pytest

from intershell.infra.interactive_cli import InteractiveCLI
from intershell.infra.terminal import InputOwnership


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def cli(output: io.StringIO) -> Iterator[InteractiveCLI]:
    terminal = InteractiveCLI(io.StringIO(), output, ownership=InputOwnership())
    yield terminal
    terminal.cleanup()


async def _settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settle() -> Callable[..., Awaitable[None]]:
    """Coroutine letting pending tasks run until they block on their next await."""
    return _settle


@pytest.fixture(autouse=True)
def _restore_package_logger() -> Iterator[None]:
    logger = logging.getLogger("intershell")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
