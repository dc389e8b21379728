"""Shelffile declarations.

- ``shelffile``: the ``Shelffile`` builder and YAML loader.
- ``options``: ``DeclareOptions``, the validated per-cookbook options.
"""

from cookshelf.core.declaration.options import DeclareOptions
from cookshelf.core.declaration.shelffile import DEFAULT_FILENAME, Shelffile

__all__ = [
    "DEFAULT_FILENAME",
    "DeclareOptions",
    "Shelffile",
]
