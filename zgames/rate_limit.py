"""
zgames/rate_limit.py
Shared slowapi limiter. Attached to app.state in zgames.main.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
