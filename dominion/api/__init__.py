from .routes import router, leaderboard_router

__all__ = ["router", "leaderboard_router"]
