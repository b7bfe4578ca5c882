"""
Time helpers shared by the routes.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware now, used for ping and health timestamps."""
    return datetime.now(timezone.utc)
