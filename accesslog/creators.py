"""
accesslog — Record Creators
============================

What:  Functions that turn an incoming ASGI scope into a RequestRecord.
Why:   The "identity" and "authuser" columns of the common log format depend
       on how a deployment authenticates. Keeping them behind small functions
       lets an operator plug in their own lookup without touching the pipeline.
How:   An extractor takes a Starlette HTTPConnection and returns a string
       ("" means unknown and renders as "-"). new_creator() combines two
       extractors into a creator: `(scope) -> RequestRecord`.

Example:
    def header_user(conn: HTTPConnection) -> str:
        return conn.headers.get("X-Forwarded-User", "")

    logger = Logger(creator=new_creator(auth_user=header_user))
"""

import base64
import binascii
from typing import Any, Callable, Mapping

from starlette.requests import HTTPConnection

from accesslog.record import RequestRecord

Extractor = Callable[[HTTPConnection], str]
Creator = Callable[[Mapping[str, Any]], RequestRecord]


def empty_identity(conn: HTTPConnection) -> str:
    """RFC 1413 identity is practically never available."""
    return ""


def empty_auth_user(conn: HTTPConnection) -> str:
    return ""


def basic_auth_user(conn: HTTPConnection) -> str:
    """
    User name from an `Authorization: Basic ...` header.

    Returns "" when the header is missing, uses another scheme, or does not
    decode to `user:password`. The password is never looked at beyond the split.
    """
    authorization = conn.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "basic" or not credentials:
        return ""
    try:
        decoded = base64.b64decode(credentials.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return ""
    user, sep, _ = decoded.partition(":")
    return user if sep else ""


def new_creator(
    identity: Extractor = empty_identity,
    auth_user: Extractor = empty_auth_user,
) -> Creator:
    """Build a creator that fills identity/auth_user with the given extractors."""

    def create(scope: Mapping[str, Any]) -> RequestRecord:
        conn = HTTPConnection(scope)
        return RequestRecord.from_scope(
            scope,
            identity=identity(conn),
            auth_user=auth_user(conn),
        )

    return create


default_creator: Creator = new_creator()
