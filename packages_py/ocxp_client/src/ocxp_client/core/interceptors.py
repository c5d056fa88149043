"""
Interceptor registries for request, response and error hooks.
"""
from dataclasses import dataclass
from typing import Callable, Generic, Iterator, List, Literal, Optional, TypeVar, Union

F = TypeVar("F", bound=Callable)


@dataclass(frozen=True)
class InterceptorHandle:
    """Opaque handle to one registry slot."""

    index: int


class Interceptors(Generic[F]):
    """
    Ordered interceptor slots.

    Ejected slots are set to None, never removed, so a handle keeps pointing
    at the same slot for its whole lifetime.
    """

    def __init__(self) -> None:
        self._fns: List[Optional[F]] = []

    def __iter__(self) -> Iterator[F]:
        """Live interceptors in registration order."""
        for fn in list(self._fns):
            if fn is not None:
                yield fn

    def __len__(self) -> int:
        return sum(1 for fn in self._fns if fn is not None)

    def _index_of(self, handle: Union[InterceptorHandle, F]) -> int:
        if isinstance(handle, InterceptorHandle):
            if 0 <= handle.index < len(self._fns) and self._fns[handle.index] is not None:
                return handle.index
            return -1
        for index, fn in enumerate(self._fns):
            if fn is handle:
                return index
        return -1

    def use(self, fn: F) -> InterceptorHandle:
        """Register fn, returning its handle."""
        self._fns.append(fn)
        return InterceptorHandle(len(self._fns) - 1)

    def eject(self, handle: Union[InterceptorHandle, F]) -> None:
        """Deactivate a slot. Ejecting twice is a no-op."""
        index = self._index_of(handle)
        if index != -1:
            self._fns[index] = None

    def exists(self, handle: Union[InterceptorHandle, F]) -> bool:
        return self._index_of(handle) != -1

    def update(
        self, handle: Union[InterceptorHandle, F], fn: F
    ) -> Union[InterceptorHandle, F, Literal[False]]:
        """Replace a live slot in place. Returns the handle, or False if the slot is not live."""
        index = self._index_of(handle)
        if index == -1:
            return False
        self._fns[index] = fn
        return handle

    def clear(self) -> None:
        self._fns = []


@dataclass
class InterceptorRegistry:
    """Request, response and error interceptors of one client."""

    request: Interceptors
    response: Interceptors
    error: Interceptors


def create_interceptors() -> InterceptorRegistry:
    return InterceptorRegistry(
        request=Interceptors(),
        response=Interceptors(),
        error=Interceptors(),
    )
