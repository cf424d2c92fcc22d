"""Tests for :mod:`authgate.auth.providers`."""

from unittest import TestCase
from datetime import datetime, timedelta

from pytz import UTC

from .. import providers, tokens
from ... import domain
from ...context import WebContext
from ...exceptions import ConfigurationError, SessionDecodeError
from ...profiles import ProfileManager, PROFILES_KEY

SECRET = 'foosecret'


class TestStatefulAuthProvider(TestCase):
    """Tests for :class:`.providers.StatefulAuthProvider`."""

    def setUp(self):
        """Log a user in on a session."""
        self.session = {}
        self.profile = domain.build_profile('foo', client_name='GitHub')
        ProfileManager(self.session).save(True, self.profile, False)
        self.provider = providers.StatefulAuthProvider()

    def test_authenticate(self):
        """The profile saved at login is found on later requests."""
        context = WebContext(session=self.session)
        self.assertEqual(self.provider.authenticate(context), self.profile)

    def test_anonymous(self):
        """A session without a profile is anonymous."""
        self.assertIsNone(self.provider.authenticate(WebContext()))

    def test_filter_by_client(self):
        """Only profiles from the requested clients are considered."""
        context = WebContext(session=self.session)
        self.assertEqual(self.provider.profiles(context, ['GitHub']),
                         [self.profile])
        self.assertEqual(self.provider.profiles(context, ['Google']), [])

    def test_corrupt(self):
        """Corrupt session data is reported, not mistaken for anonymous."""
        context = WebContext(session={PROFILES_KEY: {'GitHub': 'foo'}})
        with self.assertRaises(SessionDecodeError):
            self.provider.authenticate(context)


class TestStatelessAuthProvider(TestCase):
    """Tests for :class:`.providers.StatelessAuthProvider`."""

    def setUp(self):
        """Create a provider and a token."""
        self.provider = providers.StatelessAuthProvider(SECRET)
        self.profile = domain.build_profile(
            'foo', client_name='HeaderClient', roles=['api'],
            expires_at=(datetime.now(tz=UTC) + timedelta(hours=1))
            .replace(microsecond=0)
        )
        self.token = tokens.encode(self.profile, SECRET)

    def test_requires_secret(self):
        """A provider without a secret cannot verify anything."""
        with self.assertRaises(ConfigurationError):
            providers.StatelessAuthProvider('')

    def test_bearer_token(self):
        """A valid bearer token authenticates the request only."""
        session = {}
        context = WebContext(
            headers={'authorization': f'Bearer {self.token}'},
            session=session
        )
        self.assertEqual(self.provider.authenticate(context), self.profile)
        self.assertEqual(session, {}, "Nothing is written to the session")
        self.assertEqual(ProfileManager.for_context(context).get(),
                         self.profile)

    def test_no_header(self):
        """No header, no profile."""
        self.assertIsNone(self.provider.authenticate(WebContext()))

    def test_malformed_header(self):
        """A header that does not carry a bearer token is an error."""
        for value in ('foo', f'Basic {self.token}', f'Bearer {self.token} x'):
            context = WebContext(headers={'Authorization': value})
            with self.assertRaises(SessionDecodeError):
                self.provider.authenticate(context)

    def test_forged_token(self):
        """A token signed with another secret is an error."""
        token = tokens.encode(self.profile, 'notthesecret')
        context = WebContext(headers={'Authorization': f'Bearer {token}'})
        with self.assertRaises(SessionDecodeError):
            self.provider.authenticate(context)

    def test_expired_token(self):
        """An expired token is treated as absent."""
        token = tokens.encode(self.profile._replace(
            expires_at=datetime.now(tz=UTC) - timedelta(minutes=1)
        ), SECRET)
        context = WebContext(headers={'Authorization': f'Bearer {token}'})
        self.assertIsNone(self.provider.authenticate(context))


class TestSerialization(TestCase):
    """A provider can serialize profiles for storage."""

    def test_serialize(self):
        """Serialized profiles are plain data, and load back."""
        profile = domain.build_profile('foo', client_name='GitHub',
                                       roles=['a', 'b'])
        data = providers.AuthProvider.serialize(profile)
        self.assertEqual(data['roles'], ['a', 'b'])
        self.assertEqual(providers.AuthProvider.deserialize(data), profile)
