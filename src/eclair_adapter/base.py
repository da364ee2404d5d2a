import os
import signal
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Protocol

from eclair_adapter.log import getLogger

from .event import stop_event


class Server(Protocol):
    """
    A Server is a service running as a daemon and have to be started and stopped.
    """

    def start(self) -> None: ...
    def stop(self) -> None: ...


def _run_concurrent(
    tasks: list[Callable[[], None]], err_signal: signal.Signals | None
) -> None:
    """
    Starts the provided tasks concurrently, one thread per task. If an error is
    raised by one task, we send a signal to the signal handler to stop the
    MainServer.
    """

    if not tasks:
        return

    with ThreadPoolExecutor(max_workers=len(tasks)) as executor:
        futures = {executor.submit(t): t for t in tasks}

        for future in as_completed(futures):
            try:
                future.result()
            except Exception as e:
                if err_signal is not None:
                    # Context can only be left after all threads have finished
                    # hence we send a signal to the signal handler to stop the
                    # other workers.
                    os.kill(os.getpid(), err_signal)
                executor.shutdown(wait=True, cancel_futures=True)
                raise e


def _run_sync(tasks: list[Callable[[], None]]) -> None:
    for task in tasks:
        task()


class BaseServer:
    def __init__(self) -> None:
        self._logger = getLogger(self.__module__)

        # Callables to be called synchronously during server stop
        self._sync_stop: list[Callable[[], None]] = []

        # Callables to be started concurrently during server start
        self._concurrent_start: list[Callable[[], None]] = []

        # Callables to be called concurrently during server stop
        self._concurrent_stop: list[Callable[[], None]] = []

    def _register_sub_server(self, subserver: Server) -> None:
        self._concurrent_start.append(subserver.start)
        self._concurrent_stop.append(subserver.stop)

    def _register_sync_stopper(self, stopper: Callable[[], None]) -> None:
        self._sync_stop.append(stopper)

    def start(self) -> None:
        """
        Starts all sub servers and blocks until they are finished. If one of
        them raises, a SIGTERM is sent to trigger the graceful shutdown.
        """

        # Preventing start if stop occurred before start.
        if stop_event.is_set():
            return

        err_signal = signal.SIGTERM
        try:
            self._logger.info("Starting...")
            _run_concurrent(self._concurrent_start, err_signal)
            self._logger.info("Finished")

        except Exception as e:
            self._logger.error(f"During start: an unexpected error occurred: {e}")
            self._logger.exception("Start exception:\n")

            os.kill(os.getpid(), err_signal)

    def stop(self) -> None:
        try:
            self._logger.info("Stopping...")
            _run_sync(self._sync_stop)
            _run_concurrent(self._concurrent_stop, None)
            self._logger.info("Stopped.")
        except Exception as e:
            self._logger.error(f"During stop: an unexpected error occurred: {e}")
            self._logger.exception("Stop exception:\n")
