"""
api/limiter.py -- Shared slowapi rate limiter instance.

api/main.py mounts it as middleware; route modules apply per-route limits
with @limiter.limit(). One shared instance means one shared counter store --
separate instances would each count in isolation and never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
