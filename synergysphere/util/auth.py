from functools import wraps
from typing import Optional

from flask import g, request

from synergysphere.services import auth_service


def bearer_token(headers) -> Optional[str]:
    header = headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip() or None
    return None


def login_required(func):
    """
    Resolves the bearer token of the current request and stores the user in `g.user`.
    Raises AuthenticationException, which the error handler turns into a 401.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        token = bearer_token(request.headers)
        g.user = auth_service.authenticate(token)
        g.token = token
        return func(*args, **kwargs)
    return wrapper
