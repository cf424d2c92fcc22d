"""
Reads and writes authenticated profiles on a session.

Profiles are kept in the session under :data:`PROFILES_KEY` as an ordered
mapping from client name to the serialized profile, so that in multi-profile
mode each client has its own slot. A request-scoped copy is kept alongside
so that the current request sees a profile as soon as it is saved, including
profiles that are never written to the session (e.g. from a bearer token).
"""

from typing import Any, Dict, List, MutableMapping, Optional
import logging

from .auth.tokens import deserialize, serialize
from .domain import Profile
from .exceptions import SessionDecodeError

logger = logging.getLogger(__name__)

PROFILES_KEY = 'authgate.profiles'


class ProfileManager(object):
    """Profiles of one request and its session."""

    def __init__(self, session: MutableMapping[str, Any],
                 attributes: Optional[Dict[str, Any]] = None) -> None:
        """
        Parameters
        ----------
        session : mapping
            The session of the current request.
        attributes : dict
            Request-scoped storage; discarded at the end of the request.

        """
        self.session = session
        self.attributes: Dict[str, Any] = \
            attributes if attributes is not None else {}

    @classmethod
    def for_context(cls, context: Any) -> 'ProfileManager':
        """Get a manager for a :class:`.WebContext`."""
        return cls(context.session, context.attributes)

    def save(self, save_in_session: bool, profile: Profile,
             multi_profile: bool) -> None:
        """
        Attach ``profile`` to the request and, optionally, to the session.

        Parameters
        ----------
        save_in_session : bool
            If ``False``, the profile is visible for this request only.
        profile : :class:`.Profile`
        multi_profile : bool
            Keep profiles from other clients; otherwise ``profile`` replaces
            whatever was there.

        """
        profiles: Dict[str, Profile] = {}
        stored: Dict[str, Any] = {}
        if multi_profile:
            try:
                profiles = dict(self._load())
                stored = self._stored()
            except SessionDecodeError as e:
                logger.warning('Discarding unreadable profiles: %s', e)
        if save_in_session:
            stored[profile.client_name] = serialize(profile)
            # Assign a new dict so that the session registers the change.
            self.session[PROFILES_KEY] = stored
            logger.debug('Saved profile %s in session', profile.typed_id)
        profiles[profile.client_name] = profile
        self.attributes[PROFILES_KEY] = profiles

    def get(self, force_reload: bool = False) -> Optional[Profile]:
        """
        Get the primary profile.

        Parameters
        ----------
        force_reload : bool
            Ignore the request-scoped copy and decode the profile from the
            session again.

        Returns
        -------
        :class:`.Profile` or None
            ``None`` if there is no profile, or it has expired.

        Raises
        ------
        :class:`.SessionDecodeError`
            If stored profile data is corrupt.

        """
        profiles = self.get_all(force_reload)
        return profiles[0] if profiles else None

    def get_all(self, force_reload: bool = False) -> List[Profile]:
        """Get all valid profiles, in the order they were saved."""
        return [profile for profile in self._load(force_reload).values()
                if not profile.expired]

    def remove_all(self) -> None:
        """Remove every profile; other session data is left alone."""
        if PROFILES_KEY in self.session:
            del self.session[PROFILES_KEY]
        self.attributes.pop(PROFILES_KEY, None)

    def _stored(self) -> Dict[str, Any]:
        stored = self.session.get(PROFILES_KEY)
        if stored is None:
            return {}
        if not isinstance(stored, dict):
            raise SessionDecodeError('Stored profiles are not a mapping')
        return dict(stored)

    def _load(self, force_reload: bool = False) -> Dict[str, Profile]:
        profiles = self.attributes.get(PROFILES_KEY)
        if profiles is None or force_reload:
            profiles = {name: deserialize(data)
                        for name, data in self._stored().items()}
            self.attributes[PROFILES_KEY] = profiles
        return profiles
