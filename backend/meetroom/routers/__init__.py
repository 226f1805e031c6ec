from meetroom.routers.rooms import router as rooms_router, debug_router
from meetroom.routers.websocket import router as websocket_router

__all__ = ["rooms_router", "debug_router", "websocket_router"]
