"""
Adapters layer - External integrations (Supabase, OneSignal) and local stand-ins.
"""

from .console_notifier import ConsoleNotifier
from .memory_store import MemoryStore
from .onesignal_notifier import OneSignalNotifier
from .supabase_auth import SupabaseAuthenticator
from .supabase_store import SupabaseStore

__all__ = [
    "ConsoleNotifier",
    "MemoryStore",
    "OneSignalNotifier",
    "SupabaseAuthenticator",
    "SupabaseStore",
]
