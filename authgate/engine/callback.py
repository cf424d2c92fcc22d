"""
Completes a login when the identity provider redirects back to us.

This is the only place where a login becomes effective: the provider's
answer is verified by the client that the user was sent to, the resulting
profile is saved on the session, and the user is sent on to the page they
originally asked for.
"""

from typing import Optional
import logging

from . import RedirectDirective, REQUESTED_URL_KEY, OFFERED_CLIENTS_KEY
from ..clients import CLIENT_NAME_PARAMETER, Client, IndirectClient, \
    call_with_timeout
from ..config import CallbackHandlerOptions, Config
from ..context import WebContext
from ..domain import Profile
from ..exceptions import AuthenticationError
from ..profiles import ProfileManager

logger = logging.getLogger(__name__)


class CallbackLogic(object):
    """Turns a provider callback into a saved profile and a redirect."""

    def __init__(self, config: Config) -> None:
        self.config = config

    def perform(self, context: WebContext,
                options: CallbackHandlerOptions) -> RedirectDirective:
        """
        Handle the provider's callback request.

        Parameters
        ----------
        context : :class:`.WebContext`
        options : :class:`.CallbackHandlerOptions`

        Returns
        -------
        :class:`.RedirectDirective`
            To the URL saved before the login started, or to
            ``options.default_url``.

        Raises
        ------
        :class:`.AuthenticationError`
            If the callback does not match a pending login, or the provider
            did not vouch for the user. No profile is saved.

        """
        client = self._resolve_client(context, options)
        self._consume_offer(context, client)

        profile = call_with_timeout(self._complete_login, client, context,
                                    timeout=self.config.provider_timeout)
        if profile is None:
            raise AuthenticationError(f'{client.name} returned no profile',
                                      reason='no_profile')

        ProfileManager.for_context(context).save(True, profile,
                                                 options.multi_profile)
        logger.debug('Login completed for %s', profile.typed_id)
        if options.renew_session:
            context.renew_session()

        target = context.session.pop(REQUESTED_URL_KEY, None) \
            or options.default_url
        return RedirectDirective(target)

    def _resolve_client(self, context: WebContext,
                        options: CallbackHandlerOptions) -> Client:
        name = options.client_name \
            or context.get_parameter(CLIENT_NAME_PARAMETER)
        if not name and len(self.config.clients) == 1:
            name = self.config.clients.names[0]
        if not name:
            raise AuthenticationError('Callback does not name a client',
                                      reason='missing_client_name')
        client = self.config.clients.get(name)
        if client is None:
            logger.warning('Callback for unknown client %r', name)
            raise AuthenticationError(f'Unknown client: {name}',
                                      reason='unknown_client')
        return client

    def _consume_offer(self, context: WebContext, client: Client) -> None:
        """The user must have been sent to this client by the gate."""
        offered = list(context.session.get(OFFERED_CLIENTS_KEY) or [])
        if client.name not in offered:
            logger.warning('Callback for %s, which was not offered; likely'
                           ' a forgery', client.name)
            raise AuthenticationError(f'No login pending for {client.name}',
                                      reason='client_not_offered')
        offered.remove(client.name)
        if offered:
            context.session[OFFERED_CLIENTS_KEY] = offered
        else:
            del context.session[OFFERED_CLIENTS_KEY]

    @staticmethod
    def _complete_login(client: Client,
                        context: WebContext) -> Optional[Profile]:
        profile = client.complete_login(context)
        if profile is None:
            return profile
        profile = profile._replace(client_name=client.name)
        if isinstance(client, IndirectClient):
            profile = client.generate_authorizations(context, profile)
        return profile
