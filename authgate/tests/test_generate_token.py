"""Tests for :mod:`authgate.generate_token`."""

from unittest import TestCase

from click.testing import CliRunner

from .. import generate_token
from ..auth import tokens


class TestGenerateToken(TestCase):
    """The script prints a token that the stateless provider accepts."""

    def test_generate(self):
        """Generate a token from command line options."""
        runner = CliRunner()
        result = runner.invoke(generate_token.generate_token, [
            '--user_id', 'jbloggs1', '--client_name', 'HeaderClient',
            '--roles', 'admin api', '--lifetime', '60',
            '--email', 'joe@bloggs.com'
        ], env={'JWT_SECRET': 'foosecret'})
        self.assertEqual(result.exit_code, 0, result.output)

        profile = tokens.decode(result.output.strip(), 'foosecret')
        self.assertEqual(profile.id, 'jbloggs1')
        self.assertEqual(profile.client_name, 'HeaderClient')
        self.assertEqual(profile.roles, ['admin', 'api'])
        self.assertEqual(profile.attributes, {'email': 'joe@bloggs.com'})
        self.assertFalse(profile.expired)

    def test_secret_required(self):
        """Without a secret, nothing is generated."""
        runner = CliRunner()
        result = runner.invoke(generate_token.generate_token,
                               ['--user_id', 'foo', '--client_name', 'x',
                                '--roles', '', '--lifetime', '60'],
                               env={'JWT_SECRET': None})
        self.assertNotEqual(result.exit_code, 0)
