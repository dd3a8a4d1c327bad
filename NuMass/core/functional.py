"""Functional programming utilities for pipeline composition."""

from typing import Callable, TypeVar
from functools import reduce

T = TypeVar('T')


def pipe_run(value: T, *funcs: Callable[[T], T]) -> T:
    """
    Apply functions sequentially to a value (left-to-right).

    Example:
        result = pipe_run(
            initial_value,
            func1,
            func2,
            func3
        )

    Equivalent to: func3(func2(func1(initial_value)))

    Args:
        value: Initial value to transform
        *funcs: Functions to apply sequentially

    Returns:
        Final transformed value
    """
    return reduce(lambda v, f: f(v), funcs, value)


# -------------------------------
# Persistence: save decorator  --
# -------------------------------

def with_persistence(fn: Callable[[T], T],
                     save_fn: Callable[[T], object]) -> Callable[[T], T]:
    """
    Wrap a function to automatically save its result.

    Args:
        fn: Function to wrap
        save_fn: Function to save the result (its return value is ignored)

    Returns:
        Wrapped function that saves after execution
    """
    def wrapped(item: T) -> T:
        result = fn(item)
        save_fn(result)
        return result
    return wrapped
