"""Allow ``python -m intershell`` invocation.

This module simply delegates to the CLI error-boundary entry point so
that ``python -m intershell`` behaves identically to the ``intershell``
console script.
"""

from __future__ import annotations

from intershell.cli.app import cli

if __name__ == "__main__":
    cli()
