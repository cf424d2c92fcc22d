"""
Identity provider integrations.

A :class:`Client` knows how to send a user to its provider
(:meth:`Client.redirection_url`) and how to turn the provider's callback into
a :class:`.domain.Profile` (:meth:`Client.complete_login`). The protocol
itself (OAuth 1.0a signing, OAuth 2.0 code exchange, etc) is up to the
implementation; the handler logic only uses those two operations.

Clients are registered once, at startup, in a :class:`Clients` registry.
Calls to a provider go through :func:`call_with_timeout` so that a slow or
failing provider surfaces as an :class:`.AuthenticationError` for the one
request involved.
"""

from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar
from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qsl
from concurrent.futures import ThreadPoolExecutor, TimeoutError
import secrets
import logging

from .context import WebContext
from .domain import Profile
from .exceptions import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)

CLIENT_NAME_PARAMETER = 'client_name'
STATE_PARAMETER = 'state'
STATE_KEY = 'authgate.state.{}'

AuthorizationGenerator = Callable[[WebContext, Profile], Profile]
T = TypeVar('T')

_executor = ThreadPoolExecutor(max_workers=16,
                               thread_name_prefix='authgate-provider')


class Client(object):
    """A named identity provider integration."""

    def __init__(self, name: str, callback_url: Optional[str] = None) -> None:
        self.name = name
        self.callback_url = callback_url

    def redirection_url(self, context: WebContext) -> str:
        """Get the URL at the provider where the user should log in."""
        raise NotImplementedError('Implemented by each client')

    def complete_login(self, context: WebContext) -> Profile:
        """
        Verify the provider's callback and build a profile.

        Raises
        ------
        :class:`.AuthenticationError`
            If the provider rejected the credential, or the callback does not
            check out.

        """
        raise NotImplementedError('Implemented by each client')

    def __repr__(self) -> str:
        return f'{type(self).__name__}(name={self.name!r})'


class IndirectClient(Client):
    """
    A client that authenticates via redirects through the user's browser.

    Provides the callback URL, the ``state`` value used to tie a callback to
    the redirect that preceded it, and authorization generators that may add
    roles to a profile once the provider has vouched for it.
    """

    def __init__(self, name: str, callback_url: Optional[str] = None,
                 include_client_name: bool = True) -> None:
        super().__init__(name, callback_url)
        self.include_client_name = include_client_name
        self.authorization_generators: List[AuthorizationGenerator] = []

    def add_authorization_generator(self,
                                    generator: AuthorizationGenerator) -> None:
        self.authorization_generators.append(generator)

    def compute_callback_url(self) -> str:
        """Callback URL, with this client's name when it is shared."""
        if not self.callback_url:
            raise ConfigurationError(f'No callback URL for {self.name}')
        if not self.include_client_name:
            return self.callback_url
        scheme, netloc, path, query, fragment = urlsplit(self.callback_url)
        params = parse_qsl(query)
        params.append((CLIENT_NAME_PARAMETER, self.name))
        return urlunsplit((scheme, netloc, path, urlencode(params), fragment))

    def generate_state(self, context: WebContext) -> str:
        """Create a ``state`` value and remember it in the session."""
        state = secrets.token_urlsafe(24)
        context.session[STATE_KEY.format(self.name)] = state
        return state

    def validate_state(self, context: WebContext) -> None:
        """
        Check the ``state`` on the callback against the one we issued.

        The stored value is consumed whatever the outcome.
        """
        expected = context.session.pop(STATE_KEY.format(self.name), None)
        received = context.get_parameter(STATE_PARAMETER)
        if not expected or not received \
                or not secrets.compare_digest(expected, received):
            raise AuthenticationError('State parameter mismatch',
                                      reason='state_mismatch')

    def generate_authorizations(self, context: WebContext,
                                profile: Profile) -> Profile:
        """Apply the authorization generators to a new profile."""
        for generator in self.authorization_generators:
            profile = generator(context, profile)
        return profile


class Clients(object):
    """Registry of clients by name."""

    def __init__(self, *clients: Client,
                 callback_url: Optional[str] = None) -> None:
        self._clients: Dict[str, Client] = {}
        for client in clients:
            self.add(client)
        if callback_url is not None:
            self.set_callback_url(callback_url)

    def add(self, client: Client) -> None:
        """
        Register a client.

        Raises
        ------
        :class:`.ConfigurationError`
            If a client by the same name is already registered.

        """
        if client.name in self._clients:
            raise ConfigurationError(f'Duplicate client name: {client.name}')
        self._clients[client.name] = client

    def set_callback_url(self, callback_url: str) -> None:
        """Use ``callback_url`` for every client that does not have one."""
        for client in self._clients.values():
            if not client.callback_url:
                client.callback_url = callback_url

    def find(self, name: str) -> Client:
        """
        Get a client by name.

        Raises
        ------
        :class:`.ConfigurationError`
            If there is no such client.

        """
        try:
            return self._clients[name]
        except KeyError as e:
            raise ConfigurationError(f'No such client: {name}') from e

    def get(self, name: Optional[str]) -> Optional[Client]:
        """Get a client by name, or ``None``."""
        if name is None:
            return None
        return self._clients.get(name)

    @property
    def names(self) -> List[str]:
        return list(self._clients)

    def __contains__(self, name: object) -> bool:
        return name in self._clients

    def __iter__(self) -> Iterator[Client]:
        return iter(self._clients.values())

    def __len__(self) -> int:
        return len(self._clients)


def call_with_timeout(func: Callable[..., T], *args: Any,
                      timeout: float = 10.0) -> T:
    """
    Call a provider operation, bounded by ``timeout`` seconds.

    Whatever goes wrong on the provider side (a rejected credential, a network
    error, no answer in time) is raised as :class:`.AuthenticationError`.
    Configuration errors are programming errors, and propagate unchanged.
    """
    future = _executor.submit(func, *args)
    try:
        return future.result(timeout=timeout)
    except TimeoutError as e:
        future.cancel()
        logger.error('Provider call %s timed out after %ss',
                     getattr(func, '__qualname__', func), timeout)
        raise AuthenticationError('Identity provider timed out',
                                  reason='provider_timeout') from e
    except (AuthenticationError, ConfigurationError):
        raise
    except Exception as e:
        logger.error('Provider call failed: %s', e)
        raise AuthenticationError(f'Identity provider failed: {e}',
                                  reason='provider_error') from e
