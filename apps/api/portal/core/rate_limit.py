"""Rate limiting configuration for the portal API."""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Single-process deployment: limits live in memory
limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
