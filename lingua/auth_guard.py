"""
Authentication Guard Decorator.

Provides a factory that produces a decorator for gating service-layer
functions behind an authenticated user.

Usage::

    from lingua.auth_guard import require_auth

    auth_guard = require_auth(store)

    @auth_guard
    async def mark_all_as_read() -> None:
        ...

Works for both plain functions and coroutine functions.
"""

from __future__ import annotations

import inspect
from functools import wraps
from typing import Any, Callable, ParamSpec, TypeVar

from lingua.auth import AuthStore

P = ParamSpec("P")
R = TypeVar("R")


class AuthenticationError(RuntimeError):
    """Raised when a guarded function is called without a signed-in user."""


def _deny() -> AuthenticationError:
    return AuthenticationError(
        "Authentication required. Please sign in before performing this action."
    )


def require_auth(store: AuthStore) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Return a decorator that enforces authentication via *store*.

    The check runs on every call, so a sign-out between two calls takes
    effect immediately.

    Args:
        store: The ``AuthStore`` holding the current user.

    Returns:
        A decorator suitable for wrapping service-layer callables.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
                if not store.is_authenticated:
                    raise _deny()
                return await func(*args, **kwargs)

            return async_wrapper  # type: ignore[return-value]

        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            if not store.is_authenticated:
                raise _deny()
            return func(*args, **kwargs)

        return wrapper

    return decorator
