'''
Throttling for endpoints that can be used to guess credentials.
Clients are keyed by address since they are not authenticated yet.
'''
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
