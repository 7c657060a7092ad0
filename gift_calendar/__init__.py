"""Gift calendar package: friends answer nine prompts, the owner reveals one per day."""

from .auth import Principal, supabase_principal_provider
from .cache import OverviewCache
from .routes import create_gift_calendar_blueprint

__all__ = [
    "OverviewCache",
    "Principal",
    "create_gift_calendar_blueprint",
    "supabase_principal_provider",
]
