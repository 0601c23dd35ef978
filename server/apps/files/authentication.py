"""HTTP Basic authentication for the files API.

Credentials from the ``Authorization`` header are validated against
Django's User model; the login is the username.
"""

import base64
import binascii
import logging
from collections.abc import Callable
from functools import wraps
from typing import Final

from django.contrib.auth import authenticate
from django.http import HttpRequest, HttpResponse, JsonResponse

logger = logging.getLogger(__name__)

REALM: Final = 'Secure File Storage'

_View = Callable[..., HttpResponse]


def parse_basic_auth(header: str) -> tuple[str, str] | None:
    """Extract username and password from a Basic auth header.

    Args:
        header: Raw ``Authorization`` header value.

    Returns:
        (username, password) tuple, or None if the header is not a
        well-formed Basic credential.
    """
    scheme, _, encoded = header.partition(' ')
    if scheme.lower() != 'basic' or not encoded:
        return None

    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError):
        return None

    username, separator, password = decoded.partition(':')
    if not separator or not username:
        return None
    return username, password


def _unauthorized() -> HttpResponse:
    response = JsonResponse(
        {'error': 'Unauthorized', 'message': 'Authentication required'},
        status=401,
    )
    response['WWW-Authenticate'] = f'Basic realm="{REALM}"'
    return response


def basic_auth_required(view: _View) -> _View:
    """Reject requests without valid Basic auth credentials.

    On success the authenticated user is available as ``request.user``.

    Args:
        view: View function to protect.

    Returns:
        Wrapped view.
    """
    @wraps(view)
    def wrapper(request: HttpRequest, *args: object, **kwargs: object) -> HttpResponse:
        credentials = parse_basic_auth(request.headers.get('Authorization', ''))
        if credentials is None:
            return _unauthorized()

        username, password = credentials
        logger.debug('Authenticating user: %s', username)
        user = authenticate(request=request, username=username, password=password)

        if user is None:
            logger.warning('Authentication failed for user: %s', username)
            return _unauthorized()

        if not user.is_active:
            logger.warning('Inactive user attempted login: %s', username)
            return _unauthorized()

        request.user = user
        return view(request, *args, **kwargs)

    return wrapper
