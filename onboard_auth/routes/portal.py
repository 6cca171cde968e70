"""Provides Flask integration for the portal shell."""

import logging
import re
from functools import wraps
from typing import Any, Callable

from flask import Blueprint, jsonify, make_response, redirect, request, \
    Response

from onboard_auth import config
from onboard_auth.auth import current_auth
from onboard_auth.auth.decorators import guarded
from onboard_auth.auth.routes import ROUTES, Route

logger = logging.getLogger(__name__)
blueprint = Blueprint('portal', __name__, url_prefix='')


def anonymous_only(func: Callable) -> Callable:
    """Send logged-in users on to where they belong."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        auth = current_auth()
        if auth.store.profile is not None:
            next_page = auth.navigator.after_login(
                request.args.get('next_page')
            )
            return make_response(redirect(next_page, code=303))
        return func(*args, **kwargs)
    return wrapper


@blueprint.after_request
def apply_response_headers(response: Response) -> Response:
    """Prevent UI redress attacks."""
    response.headers['Content-Security-Policy'] = "frame-ancestors 'none'"
    response.headers['X-Frame-Options'] = 'DENY'
    return response


def page(**kwargs: Any) -> Response:
    """Describe the screen that renders for the current request."""
    profile = current_auth().store.profile
    return jsonify({
        'path': request.path,
        'params': kwargs,
        'user': profile.to_dict() if profile is not None else None,
    })


@blueprint.route(config.LOGIN_PATH, methods=['GET'])
@anonymous_only
def login_form() -> Response:
    return jsonify({'path': request.path,
                    'next_page': request.args.get('next_page')})


@blueprint.route(config.LOGIN_PATH, methods=['POST'])
def login() -> Response:
    """Log in and continue to the remembered page or the onboarding step."""
    data = request.get_json(silent=True) or request.form
    next_page = request.args.get('next_page') or data.get('next_page')
    auth = current_auth()
    result = auth.account.login(data.get('email', ''),
                                data.get('password', ''))
    if not result.ok:
        logger.debug('Login rejected: %s', result.message)
        return make_response(jsonify({'error': result.message}), 401)
    return make_response(redirect(auth.navigator.after_login(next_page),
                                  code=303))


@blueprint.route('/logout', methods=['GET'])
def logout() -> Response:
    """End the session and return to the login page."""
    current_auth().account.logout()
    return make_response(redirect(config.LOGIN_PATH, code=303))


def _register(route: Route) -> None:
    if route.rule == config.LOGIN_PATH:
        return
    view = page if route.public else guarded(page)
    endpoint = re.sub(r'\W+', '_', route.rule).strip('_') or 'home'
    blueprint.add_url_rule(route.rule, endpoint=endpoint, view_func=view,
                           methods=['GET'])


for _route in ROUTES:
    _register(_route)
