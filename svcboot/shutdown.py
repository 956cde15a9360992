"""Shutdown hooks and the caller-facing service handle."""

from __future__ import annotations

import asyncio
import inspect
import logging
import signal
import subprocess
from typing import Any, Awaitable, Callable, Iterable, List, Sequence, Union

from .launcher import terminate_process_tree
from .models import ResolvedConfig, ResolvedPaths, ServiceState

logger = logging.getLogger(__name__)

ShutdownCallback = Callable[[], Union[Awaitable[Any], Any]]
StateCallback = Callable[[ServiceState], None]


class ShutdownRegistry:
    """
    Collects cleanup callbacks that the host runs once at termination.

    The registry is created and driven by the host application: it calls
    :meth:`run` when it is about to exit (for example from a signal
    handler installed with :func:`install_signal_handlers`).
    """

    def __init__(self) -> None:
        self._callbacks: List[ShutdownCallback] = []
        self._ran = False

    def __len__(self) -> int:
        return len(self._callbacks)

    @property
    def ran(self) -> bool:
        return self._ran

    def register(self, callback: ShutdownCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unregister() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

        return unregister

    async def run(self) -> List[BaseException]:
        """Invoke every callback once, newest first; returns collected errors."""
        if self._ran:
            return []
        self._ran = True
        callbacks, self._callbacks = list(reversed(self._callbacks)), []
        errors: List[BaseException] = []
        for callback in callbacks:
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.exception("Shutdown callback %r failed", callback)
                errors.append(exc)
        return errors


def install_signal_handlers(
    registry: ShutdownRegistry,
    loop: asyncio.AbstractEventLoop | None = None,
    signals: Iterable[signal.Signals] = (signal.SIGINT, signal.SIGTERM),
) -> List[signal.Signals]:
    loop = loop or asyncio.get_running_loop()
    installed: List[signal.Signals] = []
    tasks: List[asyncio.Task] = []

    def _handle(sig: signal.Signals) -> None:
        if tasks:
            return
        logger.info("Received %s, shutting down", sig.name)
        tasks.append(loop.create_task(registry.run()))

    for sig in signals:
        try:
            loop.add_signal_handler(sig, _handle, sig)
        except (NotImplementedError, RuntimeError):
            continue
        installed.append(sig)
    return installed


class ServiceHandle:
    def __init__(
        self,
        process: subprocess.Popen,
        config: ResolvedConfig,
        paths: ResolvedPaths,
        args: Sequence[str],
        on_state: StateCallback | None = None,
    ) -> None:
        self.process = process
        self.config = config
        self.paths = paths
        self.args = list(args)
        self.state = ServiceState.RUNNING
        self._on_state = on_state
        self._closed = False
        self._unregister: Callable[[], None] | None = None

    def __repr__(self) -> str:
        return (
            f"<ServiceHandle {self.config.formula.name}:{self.config.name} "
            f"pid={self.process.pid} state={self.state.value}>"
        )

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def running(self) -> bool:
        return self.process.poll() is None

    def attach(self, registry: ShutdownRegistry) -> None:
        self._unregister = registry.register(self.close)

    def _set_state(self, state: ServiceState) -> None:
        self.state = state
        if self._on_state is not None:
            self._on_state(state)

    async def close(self) -> None:
        """Request termination of the service. Repeated calls do nothing."""
        if self._closed:
            return
        self._closed = True
        self._set_state(ServiceState.STOPPING)
        if terminate_process_tree(self.process):
            logger.info(
                "Stopping %s (pid %s)", self.config.formula.name, self.process.pid
            )
        else:
            logger.debug("%s already exited", self.config.formula.name)
        self._set_state(ServiceState.STOPPED)
        if self._unregister is not None:
            self._unregister()
            self._unregister = None

    async def wait(self, timeout: float | None = None, interval: float = 0.05) -> int | None:
        """Poll until the child exits; returns its exit code, or None on timeout."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while True:
            code = self.process.poll()
            if code is not None:
                return code
            if deadline is not None and loop.time() >= deadline:
                return None
            await asyncio.sleep(interval)
