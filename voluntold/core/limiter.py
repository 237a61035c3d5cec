"""Request rate limits for the unauthenticated link-request endpoints.

The limiter instance is shared by main (app.state.limiter) and the route
modules that decorate endpoints with it.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from voluntold.core.config import get_settings

LINK_REQUEST_LIMIT = "10/minute"
APPLICATION_LIMIT = "5/minute"

limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().rate_limit_enabled,
)

limit_link_requests = limiter.limit(LINK_REQUEST_LIMIT)
limit_applications = limiter.limit(APPLICATION_LIMIT)
