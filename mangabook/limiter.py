from slowapi import Limiter
from slowapi.util import get_remote_address

from mangabook.config import GLOBAL_RATE_LIMIT, RATE_LIMIT_ENABLED

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[GLOBAL_RATE_LIMIT],
    enabled=RATE_LIMIT_ENABLED,
)
