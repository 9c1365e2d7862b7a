"""Top-level package for the H5P editor storage adapter.

The package exposes the storage layer used by the content editor to resolve
library translations, catalogue content types and retain uploaded files.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
