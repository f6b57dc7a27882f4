from __future__ import annotations

from collections.abc import Callable

from school_authz.policy import Role


def require_roles(roles: list[Role]) -> Callable:
    """
    Decorator-style alternative to listing `required_roles` in the YAML config.

    The decorator does not check anything itself; it attaches metadata that
    the global security dependency reads after routing.
    """

    def decorator(fn: Callable) -> Callable:
        existing = set(getattr(fn, "__security_required_roles__", set()))
        setattr(fn, "__security_required_roles__", existing | {Role(r) for r in roles})
        return fn

    return decorator
