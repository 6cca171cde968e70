"""Follows guard decisions for a navigation event."""

import logging
from typing import List, NamedTuple, Optional
from urllib.parse import urlsplit

from onboard_auth import config
from onboard_auth.exceptions import RedirectLoop
from onboard_auth.next_page import good_next_page

from . import onboarding
from .guards import GuardChain, Redirect, Suspend

logger = logging.getLogger(__name__)


class Navigation(NamedTuple):
    """Outcome of navigating to :attr:`requested`."""

    requested: str
    rendered: Optional[str]
    """Path that renders, or ``None`` while the session is initializing."""

    redirects: List[str]
    suspended: bool = False
    next_page: Optional[str] = None
    """Set when the user was sent to log in first."""


class Navigator(object):
    """Resolves a requested path to the path that actually renders."""

    def __init__(self, chain: GuardChain,
                 max_redirects: int = config.MAX_REDIRECTS) -> None:
        self.chain = chain
        self.max_redirects = max_redirects

    def navigate(self, path: str) -> Navigation:
        """
        Evaluate the guards for ``path`` and follow their redirects.

        Raises
        ------
        :class:`.RedirectLoop`
            If more than ``max_redirects`` redirects are needed.

        """
        current = urlsplit(path).path or '/'
        redirects: List[str] = []
        next_page: Optional[str] = None
        while True:
            decision = self.chain.evaluate(current)
            if isinstance(decision, Suspend):
                logger.debug('Navigation to %s suspended', path)
                return Navigation(path, None, redirects, True, next_page)
            if not isinstance(decision, Redirect):
                return Navigation(path, current, redirects, False, next_page)
            if decision.next_page is not None:
                next_page = decision.next_page
            redirects.append(decision.location)
            if len(redirects) > self.max_redirects:
                raise RedirectLoop(f'Redirects from {path} did not settle: '
                                   f'{" -> ".join(redirects)}')
            current = decision.location

    def after_login(self, next_page: Optional[str] = None) -> str:
        """Where to go after logging in: the remembered page if it is safe."""
        profile = self.chain.store.profile
        if profile is None:
            default = config.LOGIN_PATH
        else:
            default = onboarding.canonical_destination(profile)
        return good_next_page(next_page, default)
