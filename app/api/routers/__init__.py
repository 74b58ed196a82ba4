"""
app/api/routers package marker.
"""

from app.api.routers.practice_ranking import router as practice_ranking_router

__all__ = [
    "practice_ranking_router",
]
