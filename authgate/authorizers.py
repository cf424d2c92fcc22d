"""
Authorization of authenticated requests.

An authorizer is consulted only once a request carries at least one
:class:`.domain.Profile`. Each authorizer answers with an
:class:`AuthorizationDecision`; a negative decision is an expected outcome
(the caller gets a 403), so authorizers never raise to signal denial.

Authorizers are registered by name on :class:`.config.Config`, and protected
routes refer to them by name, for example:

.. code-block:: python

   config = Config(clients, authorizers={
       'admin': RequireAllPermissions(['admin']),
       'github-only': ClientNameAuthorizer(['GitHubClient']),
   })

   @gate.secured(clients=['GitHubClient'], authorizers=['admin'])
   def admin_panel():
       ...

"""

from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, \
    Sequence
import logging

from .context import WebContext
from .domain import Profile

logger = logging.getLogger(__name__)


class AuthorizationDecision(NamedTuple):
    """Outcome of an authorization check."""

    authorized: bool
    reason: Optional[str] = None
    """Short, stable code describing why access was denied."""


GRANTED = AuthorizationDecision(True)
NO_PROFILE = AuthorizationDecision(False, 'no_profile')


class Authorizer(object):
    """Decides whether a set of profiles may access a resource."""

    def is_authorized(self, context: WebContext,
                      profiles: Sequence[Profile]) -> AuthorizationDecision:
        raise NotImplementedError('Implemented by each authorizer')


class ProfileAuthorizer(Authorizer):
    """Grants access when every profile passes :meth:`check`."""

    reason = 'denied'

    def is_authorized(self, context: WebContext,
                      profiles: Sequence[Profile]) -> AuthorizationDecision:
        if not profiles:
            return NO_PROFILE
        for profile in profiles:
            if not self.check(context, profile):
                return AuthorizationDecision(False, self.reason)
        return GRANTED

    def check(self, context: WebContext, profile: Profile) -> bool:
        raise NotImplementedError('Implemented by each authorizer')


class RequireAllPermissions(ProfileAuthorizer):
    """Every profile must hold all of the required permissions."""

    reason = 'missing_permissions'

    def __init__(self, permissions: Iterable[str]) -> None:
        self.permissions = frozenset(permissions)

    def check(self, context: WebContext, profile: Profile) -> bool:
        return profile.has_permissions(self.permissions)


class RequireAnyPermission(ProfileAuthorizer):
    """Every profile must hold at least one of the listed permissions."""

    reason = 'no_matching_permission'

    def __init__(self, permissions: Iterable[str]) -> None:
        self.permissions = frozenset(permissions)

    def check(self, context: WebContext, profile: Profile) -> bool:
        if not self.permissions:
            return True
        return bool(self.permissions & set(profile.roles))


class ClientNameAuthorizer(ProfileAuthorizer):
    """Every profile must come from one of the allowed clients."""

    reason = 'client_not_allowed'

    def __init__(self, client_names: Iterable[str]) -> None:
        self.client_names = frozenset(client_names)

    def check(self, context: WebContext, profile: Profile) -> bool:
        return profile.client_name in self.client_names


class PredicateAuthorizer(Authorizer):
    """Adapts a function ``(profiles, context) -> bool``."""

    def __init__(self, predicate: Callable[[Sequence[Profile], WebContext],
                                           bool],
                 reason: str = 'denied') -> None:
        self.predicate = predicate
        self.reason = reason

    def is_authorized(self, context: WebContext,
                      profiles: Sequence[Profile]) -> AuthorizationDecision:
        if not profiles:
            return NO_PROFILE
        if self.predicate(profiles, context):
            return GRANTED
        return AuthorizationDecision(False, self.reason)


def check_all(names: Iterable[str], authorizers: Dict[str, Authorizer],
              context: WebContext,
              profiles: List[Profile]) -> AuthorizationDecision:
    """
    Evaluate the named authorizers in order; all of them must pass.

    With no authorizers, authentication alone is enough. Evaluation stops at
    the first denial, whose reason is returned.
    """
    for name in names:
        decision = authorizers[name].is_authorized(context, profiles)
        if not decision.authorized:
            logger.debug('Authorizer %s denied access: %s', name,
                         decision.reason)
            return decision
    return GRANTED
