"""Spawns and stops the external miner binary."""

from __future__ import annotations

import asyncio
import contextlib

import psutil
from common.utils.exceptions import MinerLaunchException
from loguru import logger

from nexa_miner import settings as miner_settings


class MinerProcess:
    def __init__(
        self,
        binary_path: str = miner_settings.MINER_BINARY_PATH,
        algorithm: str = miner_settings.MINER_ALGORITHM,
        pool: str = miner_settings.MINER_POOL,
        api_port: int = miner_settings.MINER_API_PORT,
        stop_timeout: float = miner_settings.MINER_STOP_TIMEOUT,
    ):
        self.binary_path = binary_path
        self.algorithm = algorithm
        self.pool = pool
        self.api_port = api_port
        self.stop_timeout = stop_timeout
        self._process: asyncio.subprocess.Process | None = None
        self._pipe_tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    def build_args(self, wallet: str, worker: str) -> list[str]:
        return [
            self.binary_path,
            "--algo",
            self.algorithm,
            "--pool",
            self.pool,
            "--user",
            f"{wallet}.{worker}",
            "--apiport",
            str(self.api_port),
        ]

    async def start(self, wallet: str, worker: str) -> str:
        if self.running:
            return "Miner already running"

        args = self.build_args(wallet, worker)
        try:
            self._process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError, OSError) as e:
            raise MinerLaunchException(f"Could not start miner binary '{self.binary_path}': {e}") from e

        logger.info(f"Miner process started (pid {self._process.pid}): {' '.join(args)}")
        self._pipe_tasks = [
            asyncio.create_task(self._pipe(self._process.stdout, "Miner"), name="miner-stdout"),
            asyncio.create_task(self._pipe(self._process.stderr, "Error"), name="miner-stderr"),
        ]
        return "Miner started"

    async def stop(self) -> str:
        if self._process is None:
            return "Miner not running"

        process, self._process = self._process, None
        if process.returncode is None:
            self._kill_children(process.pid)
            with contextlib.suppress(ProcessLookupError):
                process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=self.stop_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Miner pid {process.pid} ignored SIGTERM; killing")
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        for task in self._pipe_tasks:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._pipe_tasks = []

        logger.info(f"Miner exited with code {process.returncode}")
        return "Miner stopped"

    @staticmethod
    def _kill_children(pid: int) -> None:
        """Terminate helper processes the miner may have forked."""
        try:
            children = psutil.Process(pid).children(recursive=True)
        except psutil.Error:
            return
        for child in children:
            with contextlib.suppress(psutil.Error):
                child.terminate()

    @staticmethod
    async def _pipe(stream: asyncio.StreamReader | None, prefix: str) -> None:
        if stream is None:
            return
        while line := await stream.readline():
            text = line.decode(errors="replace").rstrip()
            if prefix == "Error":
                logger.warning(f"{prefix}: {text}")
            else:
                logger.debug(f"{prefix}: {text}")
