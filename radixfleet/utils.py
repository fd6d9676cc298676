import sys
from asyncio import ensure_future, wait
from collections.abc import Mapping
from functools import update_wrapper
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Sequence, TypeVar, cast


class Initializer:
    def __init__(self, *args, **kwargs):
        for key, value in kwargs.items():
            setattr(self, key, value)
        super().__init__(*args)


if TYPE_CHECKING:
    ReturnValue = TypeVar("ReturnValue")

    def initializer(f: Callable[..., ReturnValue]) -> ReturnValue:
        return cast(ReturnValue, None)

else:

    class initializer:
        """Compute an attribute on first access and cache it in the
        instance dictionary, so later lookups never call the function."""

        def __init__(self, getfunction):
            self.getfunction = getfunction
            self.name = getfunction.__name__
            update_wrapper(self, getfunction)

        def __set_name__(self, objtype, name):
            self.name = name

        def __get__(self, obj, objtype=None):
            if obj is None:
                return self
            value = self.getfunction(obj)
            vars(obj)[self.name] = value
            return value


class fallback:
    def __init__(self, method):
        self._method = method
        update_wrapper(self, method)

    def __get__(self, instance, owner):
        return self._method(owner if instance is None else instance)


def coalesce(*args):
    """Return the first non-None argument (or None)."""
    for arg in args:
        if arg is not None:
            return arg


def is_enabled(value: Any) -> bool:
    """Interpret a tag value or environment variable as a flag.

    Tags only carry strings, so "true"/"false" are what usually comes back."""
    if isinstance(value, str):
        return value.strip().lower() not in ('', '0', 'false', 'no', 'off')
    return bool(value)


def frozendict(*args, **kwargs) -> MappingProxyType:
    if len(args) == 1 and not kwargs:
        (arg,) = args
        if isinstance(arg, MappingProxyType):
            return arg
        if isinstance(arg, Mapping):
            return MappingProxyType(arg)
    return MappingProxyType(dict(*args, **kwargs))


async def _result_or_exception(awaitable: Awaitable):
    try:
        return await awaitable
    except Exception as e:
        return e


async def parallel(awaitables: Iterable[Awaitable]) -> Sequence:
    tasks = tuple(ensure_future(awaitable) for awaitable in awaitables)
    if not tasks:
        return ()
    await wait(tasks)
    return tuple([await _result_or_exception(task) for task in tasks])


def get_file(*args, **kwargs):
    with open(*args, **kwargs) as fh:
        return fh.read()


def put_file(contents, *args, **kwargs):
    with open(*args, **kwargs) as fh:
        return fh.write(contents)


def warn(*args, **kwargs):
    kwargs.setdefault('file', sys.stderr)
    kwargs.setdefault('flush', True)
    return print(*args, **kwargs)


class subdict(dict):
    """Subclass dict so that we can weakref it"""

    __slots__ = ('__weakref__',)


__all__ = (
    'Initializer',
    'coalesce',
    'fallback',
    'frozendict',
    'get_file',
    'initializer',
    'is_enabled',
    'parallel',
    'put_file',
    'subdict',
    'warn',
)
