"""
rms_server/rate_limit.py
Shared slowapi limiter keyed on the client address
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

SETUP_ADMIN_LIMIT = "10/minute"
SIGN_IN_LIMIT = "20/minute"
