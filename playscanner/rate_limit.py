"""
Rate limiting configuration using slowapi.

Three tiers:
  • collect – 5/min  (privileged collection trigger – each pass is slow)
  • search  – 30/min (public search – cheap, but fans out to providers in live mode)
  • default – 60/min (everything else)

The limiter keys on client IP by default.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Named rate strings for use in @limiter.limit() decorators
COLLECT = "5/minute"     # POST /collect, provider tests
SEARCH = "30/minute"     # POST /search
DEFAULT = "60/minute"    # general API

limiter = Limiter(key_func=get_remote_address, default_limits=[DEFAULT])
