from slowapi import Limiter
from slowapi.util import get_remote_address

# Shared by main (state + handler) and the rate-limited routers
limiter = Limiter(key_func=get_remote_address)
