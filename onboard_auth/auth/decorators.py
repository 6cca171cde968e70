"""
Guard-based protection of Flask views.

This module provides :func:`guarded`, a decorator that runs the
:class:`.GuardChain` of the current app for the requested path before the
view is called:

.. code-block:: python

   from onboard_auth.auth.decorators import guarded


   @blueprint.route('/dashboard', methods=['GET'])
   @guarded
   def dashboard():
       '''Only renders once the user is fully onboarded.'''
       ...

When the decorated view is called...

- While the session is still initializing, an empty ``204`` is returned.
- If a guard redirects, a ``303`` to the redirect location is returned. For
  the login page the requested path is passed along as ``next_page``.
- Otherwise the view is called with its original parameters.

"""

from functools import wraps
from typing import Any, Callable
from urllib.parse import urlencode

from flask import Response, redirect, request

from . import current_auth
from .guards import Redirect, Suspend


def location_for(decision: Redirect) -> str:
    """URL to send the user to for a redirect decision."""
    if decision.next_page:
        return f'{decision.location}?{urlencode({"next_page": decision.next_page})}'
    return decision.location


def guarded(func: Callable) -> Callable:
    """Decorate a view so that it only runs when the guards allow it."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        decision = current_auth().guards.evaluate(request.path)
        if isinstance(decision, Suspend):
            return Response(status=204)
        if isinstance(decision, Redirect):
            return redirect(location_for(decision), code=303)
        return func(*args, **kwargs)
    return wrapper
