"""
Ambient correlation id storage

Each store wraps its own ContextVar, so a value bound in one request
handler (thread or asyncio task) is never visible to another one.
Tasks created while a value is bound inherit it.
"""

import contextvars
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator, Optional, TypeVar

T = TypeVar("T")


class ContextStore:
    """Holds the correlation id of the unit of work currently running"""

    def __init__(self, name: str = "request_id"):
        self._var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
            name, default=None
        )

    def current(self) -> Optional[str]:
        """Return the bound correlation id, or None outside any scope"""
        return self._var.get()

    @contextmanager
    def scope(self, correlation_id: Optional[str]) -> Iterator[Optional[str]]:
        """Bind `correlation_id` for the body of a with-block, restoring the outer value after"""
        token = self._var.set(correlation_id)
        try:
            yield correlation_id
        finally:
            self._var.reset(token)

    def run(self, correlation_id: Optional[str], fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Call `fn` with `correlation_id` bound

        Use `arun` for coroutine functions: a coroutine created here would
        only start running after the binding has been released.
        """
        with self.scope(correlation_id):
            return fn(*args, **kwargs)

    async def arun(
        self,
        correlation_id: Optional[str],
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Await `fn(*args, **kwargs)` with `correlation_id` bound"""
        with self.scope(correlation_id):
            return await fn(*args, **kwargs)
