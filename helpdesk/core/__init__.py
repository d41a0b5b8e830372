from .clock import utcnow
from .config import settings
from .security import verify_token

__all__ = [
    "settings",
    "utcnow",
    "verify_token",
]
