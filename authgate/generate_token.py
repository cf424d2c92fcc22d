"""
Helper script for generating a bearer token for API routes.

Routes protected with :class:`.StatelessAuthProvider` read a signed profile
from the ``Authorization`` header. Be sure to use the same secret here as in
the app; set ``JWT_SECRET=somesecret`` in your environment.

.. code-block:: bash

   $ JWT_SECRET=foosecret authgate-generate-token
   User ID: jbloggs1
   Client name [HeaderClient]:
   Roles (space delim) []: admin api
   Valid for (seconds) [36000]:

   eyJ0eXAiOiJKV1QiLCJhbGciOiJIUzI1NiJ9...

Then set the header ``Authorization: Bearer [token]`` on your requests.
"""

from typing import Optional
from datetime import datetime, timedelta

import click
from pytz import UTC

from .auth import tokens
from .domain import build_profile


@click.command()
@click.option('--user_id', prompt='User ID')
@click.option('--client_name', prompt='Client name', default='HeaderClient')
@click.option('--roles', prompt='Roles (space delim)', default='')
@click.option('--email', default=None)
@click.option('--lifetime', prompt='Valid for (seconds)', default=36000)
@click.option('--secret', envvar='JWT_SECRET', required=True)
def generate_token(user_id: str, client_name: str = 'HeaderClient',
                   roles: str = '', email: Optional[str] = None,
                   lifetime: int = 36000, secret: str = '') -> None:
    """Generate a bearer token for dev/testing purposes."""
    profile = build_profile(
        user_id,
        client_name=client_name,
        attributes={'email': email} if email else {},
        roles=roles.split(),
        expires_at=datetime.now(tz=UTC) + timedelta(seconds=int(lifetime))
    )
    click.echo(tokens.encode(profile, secret))


if __name__ == '__main__':
    generate_token()
