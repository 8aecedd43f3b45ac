"""API routes package."""

from iac_index.routes.policies import router as policies_router
from iac_index.routes.sources import router as sources_router
from iac_index.routes.templates import router as templates_router

__all__ = [
    "policies_router",
    "sources_router",
    "templates_router",
]
