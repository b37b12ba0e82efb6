"""intershell — page-based interactive CLI framework.

Builds repository-tooling wizards from pages, reducers, middleware and
plugins on top of a raw-terminal key-event layer.
"""

from intershell.builder import FrameworkBuilder, create_framework, create_simple_framework
from intershell.framework import Framework
from intershell.version import __version__

__all__: list[str] = [
    "Framework",
    "FrameworkBuilder",
    "__version__",
    "create_framework",
    "create_simple_framework",
]
