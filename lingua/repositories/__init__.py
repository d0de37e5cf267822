"""
Repository Layer Package.

Data-access abstractions over the hosted Supabase tables.  Services
never touch ``db.supabase`` query builders directly.

Usage:
    from lingua.repositories.profile_repository import ProfileRepository
"""

from lingua.repositories.base_repository import BaseRepository
from lingua.repositories.notification_repository import NotificationRepository
from lingua.repositories.profile_repository import ProfileRepository

__all__ = [
    "BaseRepository",
    "NotificationRepository",
    "ProfileRepository",
]
