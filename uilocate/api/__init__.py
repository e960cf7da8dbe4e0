"""FastAPI endpoints for uilocate.

This sub-package provides REST API endpoints for:
- Running a localization over a base64 screenshot
- Exporting the debug/audit bundle of the latest run
"""

from .app import create_app
from .routes import debug_router, get_locator, locate_router, set_locator

__all__ = [
    "create_app",
    "debug_router",
    "get_locator",
    "locate_router",
    "set_locator",
]
