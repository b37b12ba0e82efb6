"""CLI layer: prompts, page factories, demos and the ``intershell`` command.

This package is the outermost layer of the application.  It may import
from ``core`` and ``infra``, but no other layer may import from ``cli``.
"""
