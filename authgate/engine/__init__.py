"""
Request handling logic, independent of the web framework.

Each handler takes a :class:`.WebContext` and the options of the route, and
answers with a directive that the Flask layer (see :mod:`authgate.ext`)
turns into a response:

- :mod:`.security` guards protected routes;
- :mod:`.callback` completes a login when the provider redirects back;
- :mod:`.logout` drops the session's profiles.
"""

from enum import Enum
from typing import NamedTuple, Optional, Tuple

from ..domain import Profile

REQUESTED_URL_KEY = 'authgate.requested_url'
"""Session slot for the URL to return to after login."""

OFFERED_CLIENTS_KEY = 'authgate.offered_clients'
"""Session slot for the clients the user was sent to, pending a callback."""


class GateState(Enum):
    """Outcome of the security check for one request."""

    AUTHENTICATED = 'authenticated'
    REDIRECTING = 'redirecting'
    REJECTED = 'rejected'


class RedirectDirective(NamedTuple):
    """Send the browser elsewhere."""

    location: str
    status: int = 302


class Decision(NamedTuple):
    """What to do with a request to a protected route."""

    state: GateState
    profiles: Tuple[Profile, ...] = ()
    redirect: Optional[RedirectDirective] = None
    reason: Optional[str] = None
