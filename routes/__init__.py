"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.matching import router as matching_router
from routes.mappings import router as mappings_router

__all__ = [
    "matching_router",
    "mappings_router",
]
