"""Tests for :mod:`authgate.clients`."""

from unittest import TestCase
from urllib.parse import urlsplit, parse_qs
import threading

from .. import clients
from ..context import WebContext
from ..domain import build_profile
from ..exceptions import AuthenticationError, ConfigurationError


class TestClients(TestCase):
    """Tests for the :class:`.clients.Clients` registry."""

    def test_duplicate_name(self):
        """Two clients may not share a name."""
        with self.assertRaises(ConfigurationError):
            clients.Clients(clients.IndirectClient('foo'),
                            clients.IndirectClient('foo'))

    def test_find(self):
        """Clients are found by name."""
        foo = clients.IndirectClient('foo')
        registry = clients.Clients(foo, clients.IndirectClient('bar'))
        self.assertIs(registry.find('foo'), foo)
        self.assertEqual(registry.names, ['foo', 'bar'])
        self.assertIn('bar', registry)
        self.assertEqual(len(registry), 2)

    def test_find_unknown(self):
        """An unknown client is a configuration error."""
        registry = clients.Clients(clients.IndirectClient('foo'))
        with self.assertRaises(ConfigurationError):
            registry.find('bar')
        self.assertIsNone(registry.get('bar'))
        self.assertIsNone(registry.get(None))

    def test_shared_callback_url(self):
        """Clients without their own callback URL get the shared one."""
        own = clients.IndirectClient('own', 'https://own.example/cb')
        shared = clients.IndirectClient('shared')
        clients.Clients(own, shared, callback_url='https://app.example/cb')
        self.assertEqual(own.callback_url, 'https://own.example/cb')
        self.assertEqual(shared.callback_url, 'https://app.example/cb')


class TestIndirectClient(TestCase):
    """Tests for :class:`.clients.IndirectClient`."""

    def test_callback_url_names_client(self):
        """The callback URL tells us which client the provider answers."""
        client = clients.IndirectClient('FooClient',
                                        'https://app.example/cb?lang=en')
        url = urlsplit(client.compute_callback_url())
        self.assertEqual(url.path, '/cb')
        self.assertEqual(parse_qs(url.query),
                         {'lang': ['en'], 'client_name': ['FooClient']})

    def test_callback_url_without_client_name(self):
        """The client name can be left out of the callback URL."""
        client = clients.IndirectClient('FooClient', 'https://app.example/cb',
                                        include_client_name=False)
        self.assertEqual(client.compute_callback_url(),
                         'https://app.example/cb')

    def test_no_callback_url(self):
        """A callback URL is required."""
        with self.assertRaises(ConfigurationError):
            clients.IndirectClient('FooClient').compute_callback_url()

    def test_state_round_trip(self):
        """The state issued before the redirect is accepted on callback."""
        client = clients.IndirectClient('FooClient')
        context = WebContext()
        state = client.generate_state(context)

        callback = WebContext(parameters={'state': state},
                              session=context.session)
        client.validate_state(callback)
        self.assertEqual(callback.session, {}, "State is consumed")

    def test_state_mismatch(self):
        """A callback with the wrong state is rejected."""
        client = clients.IndirectClient('FooClient')
        context = WebContext()
        client.generate_state(context)

        callback = WebContext(parameters={'state': 'forged'},
                              session=context.session)
        with self.assertRaises(AuthenticationError) as caught:
            client.validate_state(callback)
        self.assertEqual(caught.exception.reason, 'state_mismatch')

        with self.assertRaises(AuthenticationError):
            client.validate_state(callback)

    def test_state_never_issued(self):
        """A callback without a pending state is rejected."""
        client = clients.IndirectClient('FooClient')
        with self.assertRaises(AuthenticationError):
            client.validate_state(WebContext(parameters={'state': 'foo'}))

    def test_authorization_generators(self):
        """Generators are applied in the order they were added."""
        client = clients.IndirectClient('FooClient')
        client.add_authorization_generator(
            lambda context, profile: profile.with_roles('first')
        )
        client.add_authorization_generator(
            lambda context, profile: profile.with_roles('second')
        )
        profile = client.generate_authorizations(WebContext(),
                                                 build_profile('foo'))
        self.assertEqual(profile.roles, ['first', 'second'])


class TestCallWithTimeout(TestCase):
    """Tests for :func:`.clients.call_with_timeout`."""

    def test_returns_result(self):
        """The result of the call is returned."""
        self.assertEqual(clients.call_with_timeout(lambda x: x * 2, 21), 42)

    def test_timeout(self):
        """A provider that does not answer in time fails the login."""
        release = threading.Event()
        try:
            with self.assertRaises(AuthenticationError) as caught:
                clients.call_with_timeout(release.wait, 5, timeout=0.05)
        finally:
            release.set()
        self.assertEqual(caught.exception.reason, 'provider_timeout')

    def test_provider_error(self):
        """Unexpected provider failures become authentication errors."""
        def broken():
            raise ConnectionError('no route to host')

        with self.assertRaises(AuthenticationError) as caught:
            clients.call_with_timeout(broken)
        self.assertEqual(caught.exception.reason, 'provider_error')

    def test_authentication_error_passes_through(self):
        """Authentication errors keep their reason."""
        def rejected():
            raise AuthenticationError('nope', reason='access_denied')

        with self.assertRaises(AuthenticationError) as caught:
            clients.call_with_timeout(rejected)
        self.assertEqual(caught.exception.reason, 'access_denied')

    def test_configuration_error_propagates(self):
        """Configuration errors are not disguised as login failures."""
        client = clients.IndirectClient('FooClient')
        with self.assertRaises(ConfigurationError):
            clients.call_with_timeout(client.compute_callback_url)
