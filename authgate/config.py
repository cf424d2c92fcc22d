"""
Configuration for protected routes, callbacks and logout.

Module-level values are read from the environment and applied to the Flask
application config as defaults by :func:`init_app`. Per-route behavior is
described by the immutable option tuples below, and the clients/authorizers
shared by all routes are held by :class:`Config`.
"""

import os
from typing import Any, Dict, Iterable, NamedTuple, Optional, Tuple

from .auth.providers import AuthProvider, StatefulAuthProvider
from .authorizers import Authorizer
from .clients import Clients
from .exceptions import ConfigurationError

JWT_SECRET = os.environ.get('JWT_SECRET', 'foosecret')
"""Secret used to sign session cookies and bearer tokens."""

AUTHGATE_SESSION_BACKEND = os.environ.get('AUTHGATE_SESSION_BACKEND', 'local')
"""``redis``, ``local`` (in-process), or ``cookie`` (Flask signed cookie)."""

REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
SESSION_DURATION = os.environ.get('SESSION_DURATION', '7200')
SESSION_COOKIE_NAME = os.environ.get('SESSION_COOKIE_NAME', 'authgate.session')

AUTHGATE_CALLBACK_PATH = os.environ.get('AUTHGATE_CALLBACK_PATH', '/callback')
AUTHGATE_LOGOUT_PATH = os.environ.get('AUTHGATE_LOGOUT_PATH', '/logout')
DEFAULT_LOGIN_REDIRECT_URL = os.environ.get('DEFAULT_LOGIN_REDIRECT_URL', '/')
DEFAULT_LOGOUT_REDIRECT_URL = os.environ.get('DEFAULT_LOGOUT_REDIRECT_URL',
                                             '/')
LOGOUT_REDIRECT_PATTERN = os.environ.get(
    'LOGOUT_REDIRECT_PATTERN',
    r'^/(?![/\\])[^\\\s\x00-\x1f\x7f]*$'
)
"""
Only same-site relative paths are accepted as post-logout targets.

Backslashes and control characters (whitespace included) are refused; browsers
read ``/\\host`` as ``//host``. The whole target must match.
"""

AUTHGATE_PROVIDER_TIMEOUT = os.environ.get('AUTHGATE_PROVIDER_TIMEOUT', '10')
"""Seconds allowed for a single call to an identity provider."""

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
LOG_JSON = os.environ.get('LOG_JSON', '') in ('1', 'true', 'yes')
"""Format log records as JSON (see :mod:`.app_logging`)."""

_DEFAULTS = {
    'JWT_SECRET': JWT_SECRET,
    'AUTHGATE_SESSION_BACKEND': AUTHGATE_SESSION_BACKEND,
    'REDIS_HOST': REDIS_HOST,
    'REDIS_PORT': REDIS_PORT,
    'REDIS_DATABASE': REDIS_DATABASE,
    'SESSION_DURATION': SESSION_DURATION,
    'AUTHGATE_CALLBACK_PATH': AUTHGATE_CALLBACK_PATH,
    'AUTHGATE_LOGOUT_PATH': AUTHGATE_LOGOUT_PATH,
    'DEFAULT_LOGIN_REDIRECT_URL': DEFAULT_LOGIN_REDIRECT_URL,
    'DEFAULT_LOGOUT_REDIRECT_URL': DEFAULT_LOGOUT_REDIRECT_URL,
    'LOGOUT_REDIRECT_PATTERN': LOGOUT_REDIRECT_PATTERN,
    'LOG_LEVEL': LOG_LEVEL,
    'LOG_JSON': LOG_JSON,
}


def init_app(app: Any) -> None:
    """Set default configuration parameters for an application instance."""
    for key, value in _DEFAULTS.items():
        app.config.setdefault(key, value)
    # Flask ships its own default of ``session``; ours wins unless the
    # application chose a name explicitly.
    if app.config.get('SESSION_COOKIE_NAME') in (None, 'session'):
        app.config['SESSION_COOKIE_NAME'] = SESSION_COOKIE_NAME


class SecurityHandlerOptions(NamedTuple):
    """Requirements for a protected route."""

    clients: Tuple[str, ...] = ()
    """Names of clients that may authenticate; the first is the default."""

    authorizers: Tuple[str, ...] = ()
    """Names of authorizers that must all pass, evaluated in order."""

    multi_profile: bool = False
    """Consider every profile in the session, not only the primary one."""

    def with_clients(self, *names: str) -> 'SecurityHandlerOptions':
        return self._replace(clients=tuple(names))

    def with_authorizers(self, *names: str) -> 'SecurityHandlerOptions':
        return self._replace(authorizers=tuple(names))


class CallbackHandlerOptions(NamedTuple):
    """Behavior of the callback route that completes a login."""

    default_url: str = DEFAULT_LOGIN_REDIRECT_URL
    """Target after login when no requested URL was saved."""

    multi_profile: bool = False
    """Keep profiles from other clients when saving a new one."""

    renew_session: bool = True
    """Rotate the session identifier once the profile is saved."""

    client_name: Optional[str] = None
    """Fixed client for this callback; otherwise read from the request."""

    failure_url: Optional[str] = None
    """Redirect here when login fails; otherwise respond 401."""


class LogoutHandlerOptions(NamedTuple):
    """Behavior of the logout route."""

    default_url: str = DEFAULT_LOGOUT_REDIRECT_URL
    url_pattern: str = LOGOUT_REDIRECT_PATTERN


class Config(object):
    """
    Clients, authorizers and the auth provider shared by every route.

    Built once at startup and not modified afterwards.
    """

    def __init__(self, clients: Clients,
                 authorizers: Optional[Dict[str, Authorizer]] = None,
                 provider: Optional[AuthProvider] = None,
                 provider_timeout: float = float(AUTHGATE_PROVIDER_TIMEOUT)
                 ) -> None:
        self.clients = clients
        self.authorizers: Dict[str, Authorizer] = dict(authorizers or {})
        self.provider = provider or StatefulAuthProvider()
        self.provider_timeout = provider_timeout

    def validate(self, options: SecurityHandlerOptions) -> None:
        """
        Check route options against the configured clients and authorizers.

        Raises
        ------
        :class:`.ConfigurationError`
            If no client is named, or a named client/authorizer is unknown.

        """
        if not options.clients:
            raise ConfigurationError('A protected route requires at least'
                                     ' one client')
        for name in options.clients:
            self.clients.find(name)     # Raises if missing.
        for name in options.authorizers:
            if name not in self.authorizers:
                raise ConfigurationError(f'No such authorizer: {name}')

    def security_options(self, clients: Iterable[str] = (),
                         authorizers: Iterable[str] = (),
                         multi_profile: bool = False
                         ) -> SecurityHandlerOptions:
        """Build and validate :class:`.SecurityHandlerOptions`."""
        options = SecurityHandlerOptions(tuple(clients), tuple(authorizers),
                                         multi_profile)
        self.validate(options)
        return options
