"""
The security check run on every request to a protected route.

For each request, the check starts in ``CHECKING_AUTH`` and ends in one of
three states (see :class:`.GateState`):

- ``REDIRECTING``: the caller has no profile from any of the route's clients.
  The requested URL is saved on the session, and the caller is sent to the
  identity provider of the selected client.
- ``AUTHENTICATED``: the caller has a profile, and every authorizer named by
  the route agrees. The request proceeds to the protected resource.
- ``REJECTED``: the caller has a profile, but an authorizer refused. The
  caller gets a 403; this is not an error condition.
"""

from typing import List
import logging

from . import Decision, GateState, RedirectDirective, REQUESTED_URL_KEY, \
    OFFERED_CLIENTS_KEY
from ..authorizers import check_all
from ..clients import CLIENT_NAME_PARAMETER, Client, call_with_timeout
from ..config import Config, SecurityHandlerOptions
from ..context import WebContext
from ..domain import Profile
from ..exceptions import ConfigurationError, InvalidToken
from ..profiles import ProfileManager

logger = logging.getLogger(__name__)


class SecurityLogic(object):
    """Decides whether a request may reach a protected resource."""

    def __init__(self, config: Config) -> None:
        self.config = config

    def perform(self, context: WebContext,
                options: SecurityHandlerOptions) -> Decision:
        """
        Check authentication and authorization for a request.

        Parameters
        ----------
        context : :class:`.WebContext`
        options : :class:`.SecurityHandlerOptions`
            Should already be validated (see :meth:`.Config.validate`).

        Returns
        -------
        :class:`.Decision`

        Raises
        ------
        :class:`.AuthenticationError`
            If the identity provider could not produce a login URL.
        :class:`.ConfigurationError`
            If the route names no client, or an unknown one.

        """
        profiles = self._load_profiles(context, options)
        if not profiles:
            logger.debug('No profile for %s; starting login', context.path)
            return self._redirect(context, options)

        if not options.multi_profile:
            profiles = profiles[:1]
        decision = check_all(options.authorizers, self.config.authorizers,
                             context, profiles)
        if not decision.authorized:
            logger.info('Access to %s denied for %s: %s', context.path,
                        profiles[0].typed_id, decision.reason)
            return Decision(GateState.REJECTED, tuple(profiles),
                            reason=decision.reason)
        logger.debug('Request is authorized, proceeding')
        return Decision(GateState.AUTHENTICATED, tuple(profiles))

    def _load_profiles(self, context: WebContext,
                       options: SecurityHandlerOptions) -> List[Profile]:
        try:
            return self.config.provider.profiles(context, options.clients)
        except InvalidToken as e:
            # Corrupt data means the caller must log in again.
            logger.warning('Could not read profiles, treating request as'
                           ' unauthenticated: %s', e)
            ProfileManager.for_context(context).remove_all()
            return []

    def _redirect(self, context: WebContext,
                  options: SecurityHandlerOptions) -> Decision:
        client = self._select_client(context, options)
        context.session[REQUESTED_URL_KEY] = context.path
        offered = list(context.session.get(OFFERED_CLIENTS_KEY) or [])
        if client.name not in offered:
            offered.append(client.name)
        context.session[OFFERED_CLIENTS_KEY] = offered

        url = call_with_timeout(client.redirection_url, context,
                                timeout=self.config.provider_timeout)
        logger.debug('Redirecting to %s for login', client.name)
        return Decision(GateState.REDIRECTING,
                        redirect=RedirectDirective(url))

    def _select_client(self, context: WebContext,
                       options: SecurityHandlerOptions) -> Client:
        """Client named by the request, if the route allows it, else first."""
        if not options.clients:
            raise ConfigurationError('A protected route requires at least'
                                     ' one client')
        requested = context.get_parameter(CLIENT_NAME_PARAMETER)
        if requested and requested in options.clients:
            return self.config.clients.find(requested)
        return self.config.clients.find(options.clients[0])
