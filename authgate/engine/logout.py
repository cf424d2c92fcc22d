"""Log the user out of this application."""

from typing import Optional
import re
import logging

from . import RedirectDirective
from ..config import LogoutHandlerOptions
from ..context import WebContext
from ..profiles import ProfileManager

logger = logging.getLogger(__name__)

URL_PARAMETER = 'url'


class LogoutLogic(object):
    """Removes the session's profiles and redirects."""

    def perform(self, context: WebContext,
                options: LogoutHandlerOptions) -> RedirectDirective:
        """
        Remove every profile from the session.

        Succeeds whether or not there was anything to remove. The user is
        sent to the ``url`` parameter of the request if it matches
        ``options.url_pattern``, otherwise to ``options.default_url``.
        """
        ProfileManager.for_context(context).remove_all()
        target = self.good_target(context.get_parameter(URL_PARAMETER),
                                  options)
        logger.info('Logged out, redirecting to %s', target)
        return RedirectDirective(target)

    @staticmethod
    def good_target(url: Optional[str], options: LogoutHandlerOptions) -> str:
        """Return ``url`` if it is an acceptable target, else the default."""
        good = (url and len(url) < 300
                and (url == options.default_url
                     or re.fullmatch(options.url_pattern, url)))
        if url and not good:
            logger.debug('Ignoring logout target %r', url)
        return url if good else options.default_url
