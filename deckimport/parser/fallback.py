"""First-match-wins lookup over an ordered list of optional providers."""

from typing import Callable, Iterable, Optional, TypeVar


T = TypeVar("T")

Provider = Callable[[], Optional[T]]


def first_match(providers: Iterable[Provider[T]], default: Optional[T] = None) -> Optional[T]:
    """Return the first non-None result.

    Providers are called lazily in order; later ones are not called once
    an earlier one produced a value.

    Args:
        providers: Zero-argument callables returning a value or None.
        default: Returned when every provider yields None.

    Returns:
        The first value found, else ``default``.
    """
    for provider in providers:
        value = provider()
        if value is not None:
            return value
    return default


def first_present(*values: Optional[T], default: Optional[T] = None) -> Optional[T]:
    """Eager variant of first_match for values already computed."""
    for value in values:
        if value is not None:
            return value
    return default
