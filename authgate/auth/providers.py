"""
Determine which profiles a request carries.

Two providers are available, and one is chosen when the application is
configured (see :class:`.config.Config`):

- :class:`StatefulAuthProvider` reads profiles saved on the session at login.
  Use it for browser-facing routes, where the session is identified by a
  cookie and kept in the distributed store.
- :class:`StatelessAuthProvider` reads a signed bearer token from the
  ``Authorization`` header on every request, and never touches the session.
  Use it for API routes.

Having no profile is not an error: :meth:`AuthProvider.authenticate` returns
``None``. Corrupt data raises :class:`.SessionDecodeError`, so that the caller
can tell it apart from an anonymous request.
"""

from typing import Iterable, List, Optional
import logging

from . import tokens
from ..context import WebContext
from ..domain import Profile
from ..exceptions import ConfigurationError, InvalidToken, SessionDecodeError
from ..profiles import ProfileManager

logger = logging.getLogger(__name__)


class AuthProvider(object):
    """Resolves the profiles held by the caller of a request."""

    def profiles(self, context: WebContext,
                 client_names: Optional[Iterable[str]] = None
                 ) -> List[Profile]:
        """
        Get the caller's profiles.

        Parameters
        ----------
        context : :class:`.WebContext`
        client_names : iterable
            If provided, only profiles from these clients are returned.

        Raises
        ------
        :class:`.SessionDecodeError`
            If stored or presented profile data cannot be decoded.

        """
        profiles = self._load(context)
        if client_names is not None:
            allowed = set(client_names)
            profiles = [p for p in profiles if p.client_name in allowed]
        return profiles

    def authenticate(self, context: WebContext,
                     client_names: Optional[Iterable[str]] = None
                     ) -> Optional[Profile]:
        """Get the caller's primary profile, or ``None``."""
        profiles = self.profiles(context, client_names)
        return profiles[0] if profiles else None

    def _load(self, context: WebContext) -> List[Profile]:
        raise NotImplementedError('Implemented by each provider')

    @staticmethod
    def serialize(profile: Profile) -> dict:
        """Represent a profile as JSON-compatible data."""
        return tokens.serialize(profile)

    @staticmethod
    def deserialize(data: dict) -> Profile:
        """Rebuild a profile from :meth:`serialize` output."""
        return tokens.deserialize(data)


class StatefulAuthProvider(AuthProvider):
    """Profiles saved on the server-side session."""

    def __init__(self, force_reload: bool = False) -> None:
        self.force_reload = force_reload

    def _load(self, context: WebContext) -> List[Profile]:
        manager = ProfileManager.for_context(context)
        return manager.get_all(force_reload=self.force_reload)


class StatelessAuthProvider(AuthProvider):
    """A profile carried by a signed bearer token on each request."""

    def __init__(self, secret: str, header: str = 'Authorization',
                 scheme: str = 'Bearer') -> None:
        if not secret:
            raise ConfigurationError('Missing token secret')
        self._secret = secret
        self.header = header
        self.scheme = scheme

    def _load(self, context: WebContext) -> List[Profile]:
        value = context.get_header(self.header)
        if not value:
            logger.debug('No auth token')
            return []
        parts = value.split()
        if len(parts) != 2 or parts[0].lower() != self.scheme.lower():
            raise SessionDecodeError(f'{self.header} header is malformed')
        try:
            profile = tokens.decode(parts[1], self._secret)
        except SessionDecodeError:
            raise
        except InvalidToken as e:
            logger.debug('Auth token rejected: %s', e)
            return []
        # The profile lives as long as the request does.
        ProfileManager.for_context(context).save(False, profile, False)
        return [profile] if not profile.expired else []
