from typing import Optional

BEARER_PREFIX = "Bearer "


class AuthError(Exception):
    pass


class MissingTokenError(AuthError):
    def __init__(self, message: str = "missing token"):
        super().__init__(message)


class TokenMismatchError(AuthError):
    def __init__(self):
        super().__init__("token mismatched")


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Pull the token out of an Authorization header value."""
    if authorization is None:
        raise MissingTokenError()
    value = authorization.strip()
    if not value.startswith(BEARER_PREFIX):
        raise MissingTokenError("missing token: expected a Bearer authorization header")
    token = value[len(BEARER_PREFIX):]
    if not token:
        raise MissingTokenError()
    return token


def check_token(authorization: Optional[str], secret: str) -> None:
    # Plain equality; the token is a low-value shared secret
    if extract_bearer_token(authorization) != secret:
        raise TokenMismatchError()
