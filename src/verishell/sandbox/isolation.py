"""
Resource-bounded executor.

Runs an arbitrary unit of work under the time and memory budget of an
IsolationConfig and normalizes every way it can end (success, error,
timeout, memory overrun, cancellation) into the same ExecutionResult shape.

This is bookkeeping, not OS isolation: work shares the interpreter. Work
passed as a plain callable runs in a worker thread; if it overruns, its
result is discarded but the thread is abandoned rather than killed.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

import psutil

from verishell._types import (
    CommandResult,
    ContextHandle,
    ErrorKind,
    ExecutionResult,
    IsolationConfig,
    ResourceUsage,
)
from verishell.errors import (
    CommandError,
    ContextBusyError,
    ExecutionCancelled,
    InvalidHandleError,
    MemoryLimitExceeded,
    TimeLimitExceeded,
)

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_TIMEOUT = 124
EXIT_CANCELLED = 130
EXIT_MEMORY = 137

Work = Callable[[], Any]


@dataclass
class _ActiveContext:
    config: IsolationConfig
    created_at: float = field(default_factory=time.monotonic)
    task: asyncio.Future[Any] | None = None


async def _invoke(work: Work) -> Any:
    """Run work: coroutine functions on the loop, plain callables in a thread."""
    if inspect.iscoroutinefunction(work):
        return await work()
    outcome = await asyncio.to_thread(work)
    if inspect.isawaitable(outcome):
        return await outcome
    return outcome


class IsolationExecutor:
    """
    Runs units of work inside isolation contexts with resource ceilings.

    Example:
        >>> executor = IsolationExecutor()
        >>> handle = executor.create_context(IsolationConfig(max_time_millis=1000))
        >>> result = await executor.execute(handle, some_coroutine_function)
        >>> executor.destroy_context(handle)
    """

    def __init__(
        self,
        *,
        memory_sampler: Callable[[], int] | None = None,
        cpu_sampler: Callable[[], float] | None = None,
    ) -> None:
        """
        Initialize the executor.

        Args:
            memory_sampler: Returns current memory use in bytes. Defaults to
                the process RSS reported by psutil.
            cpu_sampler: Returns consumed CPU seconds. Defaults to the process
                user + system time reported by psutil.
        """
        self._contexts: dict[ContextHandle, _ActiveContext] = {}
        self._process = psutil.Process()
        self._memory_sampler = memory_sampler or self._process_rss
        self._cpu_sampler = cpu_sampler or self._process_cpu_seconds

    @property
    def active_contexts(self) -> int:
        """Number of contexts created and not yet destroyed."""
        return len(self._contexts)

    def create_context(self, config: IsolationConfig) -> ContextHandle:
        """Allocate bookkeeping for one isolation context and return its handle."""
        handle = f"ctx-{uuid.uuid4().hex[:12]}"
        self._contexts[handle] = _ActiveContext(config=config)
        logger.debug(f"Created context {handle}")
        return handle

    async def execute(self, handle: ContextHandle, work: Work) -> ExecutionResult[Any]:
        """
        Run work inside a context, racing it against the time budget.

        Args:
            handle: Handle returned by create_context.
            work: Zero-argument callable returning a value or an awaitable.
                A returned CommandResult contributes stdout, stderr and exit
                code; a non-zero exit code fails the execution.

        Returns:
            ExecutionResult describing the outcome. Exit code 124 means the
            time limit was hit, 137 the memory limit, 130 that the context
            was destroyed mid-flight, 1 that the work raised.

        Raises:
            InvalidHandleError: If the handle is unknown or destroyed.
            ContextBusyError: If the context already runs an execution.
        """
        context = self._contexts.get(handle)
        if context is None:
            raise InvalidHandleError(handle)
        if context.task is not None and not context.task.done():
            raise ContextBusyError(handle)

        config = context.config
        memory_before = self._sample(self._memory_sampler, 0)
        cpu_before = self._sample(self._cpu_sampler, 0.0)
        start = time.monotonic()

        task = asyncio.ensure_future(_invoke(work))
        context.task = task
        try:
            done, _ = await asyncio.wait({task}, timeout=config.max_time_millis / 1000)
        finally:
            if not task.done():
                task.cancel()
            if context.task is task:
                context.task = None

        elapsed_millis = int((time.monotonic() - start) * 1000)
        memory_used = max(0, self._sample(self._memory_sampler, 0) - memory_before)
        cpu_seconds = max(0.0, self._sample(self._cpu_sampler, 0.0) - cpu_before)
        cpu_percent = (cpu_seconds / (elapsed_millis / 1000)) * 100 if elapsed_millis else 0.0

        value: Any = None
        error: BaseException | None = None
        kind: ErrorKind | None = None
        stdout = ""
        stderr = ""
        exit_code = 0

        if task not in done:
            # The budget was consumed in full even if the timer fired a hair early.
            elapsed_millis = max(elapsed_millis, config.max_time_millis)
            error = TimeLimitExceeded(
                f"Time limit exceeded: {elapsed_millis}ms > {config.max_time_millis}ms"
            )
            kind, exit_code = ErrorKind.TIMEOUT, EXIT_TIMEOUT
        elif task.cancelled():
            error = ExecutionCancelled(f"Execution cancelled: context {handle} destroyed")
            kind, exit_code = ErrorKind.CANCELLED, EXIT_CANCELLED
        elif task.exception() is not None:
            error = task.exception()
            kind, exit_code = ErrorKind.EXECUTION_ERROR, EXIT_ERROR
        else:
            value = task.result()
            if isinstance(value, CommandResult):
                stdout, stderr, exit_code = value.stdout, value.stderr, value.exit_code
                if not value.success:
                    error = CommandError(
                        f"Command failed with exit code {value.exit_code}",
                        exit_code=value.exit_code,
                    )
                    kind = ErrorKind.EXECUTION_ERROR

        if error is None and elapsed_millis > config.max_time_millis:
            error = TimeLimitExceeded(
                f"Time limit exceeded: {elapsed_millis}ms > {config.max_time_millis}ms"
            )
            kind, exit_code = ErrorKind.TIMEOUT, EXIT_TIMEOUT

        if memory_used > config.max_memory_bytes:
            error = MemoryLimitExceeded(
                f"Memory limit exceeded: {memory_used} bytes > {config.max_memory_bytes} bytes"
            )
            kind, exit_code = ErrorKind.MEMORY_LIMIT, EXIT_MEMORY

        if error is not None and not stderr:
            stderr = str(error)

        if error is not None:
            logger.debug(f"Execution in {handle} failed ({kind.value if kind else 'error'}): {error}")

        return ExecutionResult(
            success=error is None,
            result=value,
            error=error,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            resource_usage=ResourceUsage(
                cpu=round(cpu_percent, 2),
                memory=memory_used,
                time_millis=elapsed_millis,
            ),
            error_kind=kind,
        )

    def destroy_context(self, handle: ContextHandle) -> None:
        """
        Release a context. Idempotent and non-blocking.

        An execution still in flight is asked to cancel; its caller receives
        a failed result once the cancellation is processed.
        """
        context = self._contexts.pop(handle, None)
        if context is None:
            return
        if context.task is not None and not context.task.done():
            logger.debug(f"Cancelling in-flight execution in {handle}")
            context.task.cancel()
        logger.debug(f"Destroyed context {handle}")

    async def run(self, work: Work, config: IsolationConfig | None = None) -> ExecutionResult[Any]:
        """Create a context, execute work in it, and always destroy it."""
        handle = self.create_context(config or IsolationConfig())
        try:
            return await self.execute(handle, work)
        finally:
            self.destroy_context(handle)

    async def run_all(
        self,
        works: Iterable[Work],
        config: IsolationConfig | None = None,
    ) -> list[ExecutionResult[Any]]:
        """Run several units of work concurrently, each in its own context."""
        return list(await asyncio.gather(*(self.run(work, config) for work in works)))

    async def close(self) -> None:
        """Destroy every context and wait for in-flight work to unwind."""
        pending = [c.task for c in self._contexts.values() if c.task is not None]
        for handle in list(self._contexts):
            self.destroy_context(handle)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def __aenter__(self) -> IsolationExecutor:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def _process_rss(self) -> int:
        return self._process.memory_info().rss

    def _process_cpu_seconds(self) -> float:
        times = self._process.cpu_times()
        return times.user + times.system

    @staticmethod
    def _sample(sampler: Callable[[], Any], default: Any) -> Any:
        # Accounting is best effort and never decides success on its own.
        try:
            return sampler()
        except (psutil.Error, OSError) as exc:
            logger.debug(f"Resource sampling failed: {exc}")
            return default
