"""Newline-delimited JSON-RPC over the standard streams of a child process."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Mapping, Optional, Sequence

from mcp_bridge.errors import ServerExitedError, TransportError
from mcp_bridge.framing import LineBuffer, decode_record

from .base import CloseHandler, MessageHandler

__all__ = ["StdioTransport"]

_READ_CHUNK = 64 * 1024


class StdioTransport:
    """
    Spawn an MCP server and talk to it through its stdin/stdout pipes.

    stdout is read in raw chunks and split by :class:`LineBuffer`, so records
    larger than the asyncio stream limit are still delivered. stderr is only
    logged.
    """

    def __init__(
        self,
        command: Sequence[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        terminate_timeout: float = 0.5,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.env = dict(env or {})
        self.terminate_timeout = terminate_timeout
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or self.__class__.__name__
        self._process: Optional[asyncio.subprocess.Process] = None
        self._tasks: list[asyncio.Task[None]] = []
        self._closing = False

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process else None

    async def start(self, on_message: MessageHandler, on_close: CloseHandler) -> None:
        self._log(f"Starting MCP server: {' '.join(self.command)}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, **self.env},
            )
        except OSError as exc:
            raise TransportError(
                f"Unable to start MCP server {self.command[0]!r}: {exc}"
            ) from exc

        self._tasks = [
            asyncio.create_task(self._read_stdout(on_message, on_close)),
            asyncio.create_task(self._read_stderr()),
        ]

    async def send(self, message: dict[str, Any]) -> None:
        process = self._process
        if process is None or process.stdin is None or process.returncode is not None:
            raise TransportError("MCP server is not running")
        data = (json.dumps(message) + "\n").encode("utf-8")
        try:
            process.stdin.write(data)
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise TransportError(f"Unable to write to MCP server: {exc}") from exc

    async def close(self) -> None:
        process = self._process
        if process is None or self._closing:
            return
        self._closing = True

        if process.returncode is None:
            if process.stdin is not None and not process.stdin.is_closing():
                process.stdin.close()
            try:
                process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(process.wait(), self.terminate_timeout)
            except asyncio.TimeoutError:
                self._log("MCP server ignored SIGTERM, killing it", logging.WARNING)
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()

        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._log(f"MCP server stopped (code {process.returncode})", logging.DEBUG)

    async def _read_stdout(
        self, on_message: MessageHandler, on_close: CloseHandler
    ) -> None:
        assert self._process is not None and self._process.stdout is not None
        stdout = self._process.stdout
        buffer = LineBuffer()
        returncode: Optional[int] = None

        try:
            while True:
                chunk = await stdout.read(_READ_CHUNK)
                if not chunk:
                    break
                for line in buffer.feed(chunk):
                    message = decode_record(line)
                    if message is None:
                        continue
                    try:
                        on_message(message)
                    except Exception:
                        self.logger.exception(
                            "[%s] Unable to dispatch record: %.200s", self.name, line
                        )
            returncode = await self._process.wait()
        finally:
            on_close(self._close_reason(returncode))

    def _close_reason(self, returncode: Optional[int]) -> TransportError:
        if self._closing:
            return TransportError("MCP server connection closed")
        if returncode is None:
            return TransportError("MCP server output could not be read")
        if returncode:
            self._log(f"MCP server exited with code {returncode}", logging.ERROR)
            return ServerExitedError(returncode)
        return TransportError("MCP server closed its output")

    async def _read_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        stderr = self._process.stderr
        buffer = LineBuffer()

        # Read in chunks, lines may exceed the StreamReader limit
        while True:
            chunk = await stderr.read(_READ_CHUNK)
            if not chunk:
                break
            for line in buffer.feed(chunk):
                self._log_server_line(line)
        self._log_server_line(buffer.pending)

    def _log_server_line(self, line: str) -> None:
        line = line.rstrip()
        if not line:
            return
        # Servers log freely on stderr; only surface what looks like an error
        level = logging.WARNING if "error" in line.lower() else logging.DEBUG
        self._log(f"server: {line[:2000]}", level)

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")
