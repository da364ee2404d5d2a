from __future__ import annotations

import logging
import os
import signal
import threading
from collections.abc import Callable
from dataclasses import dataclass

from .base import BaseServer
from .config import EclairConfig
from .event import stop_all
from .messaging.bridge import EclairMessageWorker
from .messaging.channel import EventChannel
from .utils import read_config_file

DEFAULT_TIMEOUT = 180
logger = logging.getLogger(__name__)


@dataclass
class MainConfig:
    eclair_cfg: EclairConfig
    config_file: str
    log_file: str | None
    log_level: str | None
    timeout: int

    @classmethod
    def from_config_dict(cls, config_dict: dict, config_file: str) -> MainConfig:
        """
        Initializes the MainConfig with the config dictionary.
        """

        eclair_cfg = EclairConfig(config_dict)

        if (timeout := config_dict.get("timeout")) is not None:
            timeout = int(timeout)
        else:
            timeout = DEFAULT_TIMEOUT

        logfile = None
        loglevel = None
        if (logging_cfg := config_dict.get("logging")) is not None:
            if (logfile := logging_cfg.get("logfile")) is not None:
                logfile = str(logfile)

            if (loglevel := logging_cfg.get("level")) is not None:
                loglevel = str(loglevel)

        return cls(eclair_cfg, config_file, logfile, loglevel, timeout)

    @classmethod
    def from_config_file(cls, file_name: str) -> MainConfig:
        return cls.from_config_dict(read_config_file(file_name), file_name)


class SignalHandler:
    """
    Signal handler for SIGTERM and SIGINT signals.
    """

    def __init__(
        self,
        sig_handler: Callable[..., None],
        alarm_handler: Callable[..., None],
        timeout: int,
    ) -> None:
        self._timeout = timeout
        self._sig_handler = sig_handler
        self._alarm_handler = alarm_handler

        self._lock = threading.Lock()
        self._sig_received = False

        signal.signal(signal.SIGTERM, self._receive_sig)
        signal.signal(signal.SIGINT, self._receive_sig)

    def _receive_sig(self, signum, frame) -> None:
        with self._lock:
            if self._sig_received:
                return
            self._sig_received = True

        logger.debug(f"Received {signal.Signals(signum).name}")

        # The alarm kills the process if the graceful shutdown takes too long.
        if self._timeout is not None:
            logger.debug(f"Setting {self._timeout=}")
            signal.signal(signal.SIGALRM, self._receive_alarm)
            signal.alarm(self._timeout)

        self._sig_handler()
        logger.debug("Signal handler called.")

    def _receive_alarm(self, signum, frame) -> None:
        logger.debug(f"Received {signal.Signals(signum).name}")

        self._alarm_handler()


class MainServer(BaseServer):
    """
    Runs the configured number of message workers. Each worker has its own
    broker connection and subscription.
    """

    def __init__(
        self, cfg: MainConfig, event_channel: EventChannel | None = None
    ) -> None:
        super().__init__()
        self.cfg = cfg
        self.event_channel = event_channel or EventChannel()

        # Stopping all retry handlers and polling loops if the server is stopped.
        self._register_sync_stopper(stop_all)

        SignalHandler(self.stop, self.kill, self.cfg.timeout)

        amqp = cfg.eclair_cfg.amqp
        self.workers = [
            EclairMessageWorker.from_config(amqp, self.event_channel, f"worker-{i}")
            for i in range(amqp.workers)
        ]
        for worker in self.workers:
            self._register_sub_server(worker)

    def kill(self) -> None:
        """
        Kills the server.
        """

        self._logger.info("Killing...\n")
        os._exit(1)
