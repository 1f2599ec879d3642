"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (mounted via SlowAPIMiddleware, exposed on
app.state.limiter) and by api/routes/v1/auth.py (per-route @limiter.limit()).

One shared instance means one in-memory counter store. Counters are keyed by
client address and live only as long as the process, like everything else.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
