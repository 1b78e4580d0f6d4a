from .commands import router as commands_router
from .history import router as history_router
from .status import router as status_router

__all__ = [
    "commands_router",
    "history_router",
    "status_router",
]
