# API routers
from .sessions import router as sessions_router
from .runs import router as runs_router
from .rules import router as rules_router
from .pairwise import router as pairwise_router

__all__ = [
    "sessions_router",
    "runs_router",
    "rules_router",
    "pairwise_router",
]
