from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

# Keyed by client address; model-backed routes opt in with ``@limiter.limit``.
limiter = Limiter(key_func=get_remote_address)
