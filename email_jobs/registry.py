"""Job executor registry."""

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Optional, Union

from email_jobs.errors import UnknownJobTypeError

Executor = Callable[[Any], Awaitable[None]]


def _key(name: Union[str, Enum]) -> str:
    # Enum members hash by name, so normalize to the plain string value
    return name.value if isinstance(name, Enum) else name


class ExecutorRegistry:
    """Lookup table from job type to the executor that runs it."""

    def __init__(self):
        self._executors: dict[str, Executor] = {}

    def executor(self, name: Union[str, Enum]):
        """
        Decorator to register a job executor.

        Usage:
            @registry.executor("query-confirmation")
            async def send_query_confirmation(payload):
                ...
        """

        def decorator(func: Executor):
            self.register(name, func)
            return func

        return decorator

    def register(self, name: Union[str, Enum], func: Executor) -> None:
        """Register func as the executor for a job type, replacing any previous one."""
        self._executors[_key(name)] = func

    def get_executor(self, name: Union[str, Enum]) -> Optional[Executor]:
        """Get an executor by job type."""
        return self._executors.get(_key(name))

    def require_executor(self, name: Union[str, Enum]) -> Executor:
        """Get an executor by job type, raising UnknownJobTypeError if missing."""
        func = self.get_executor(name)
        if func is None:
            raise UnknownJobTypeError(_key(name))
        return func

    def all_executors(self) -> dict[str, Executor]:
        """Get all registered executors."""
        return self._executors.copy()

    def __contains__(self, name: Union[str, Enum]) -> bool:
        return _key(name) in self._executors


# Global registry instance
executor_registry = ExecutorRegistry()
