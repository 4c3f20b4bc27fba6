from app.routes.memory import router as memory_router
from app.routes.search import router as search_router
from app.routes.vision import router as vision_router

__all__ = ["memory_router", "search_router", "vision_router"]
