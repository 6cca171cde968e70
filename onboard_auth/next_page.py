"""Next page handling."""
import re
from typing import Optional

from onboard_auth import config


def good_next_page(next_page: Optional[str], default: str) -> str:
    """Checks if a next_page is good and returns it.

    If not good, it will return the default.
    """
    good = (next_page and len(next_page) < 300 and
            next_page != config.LOGIN_PATH and
            re.match(config.login_redirect_pattern, next_page))
    return next_page if good else default
