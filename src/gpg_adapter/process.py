from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections.abc import Callable, Mapping
from typing import IO, Any

from .errors import ToolNotFoundError
from .streams import InputValue, open_input
from .types import ProcessOutcome

logger = logging.getLogger("gpg-adapter.process")

CHUNK_SIZE = 2048

# Arguments whose following value must never reach the logs
SECRET_ARGS = frozenset({"--passphrase"})


def redact_args(args: list[str]) -> list[str]:
    redacted = []
    hide_next = False
    for arg in args:
        redacted.append("****" if hide_next else arg)
        hide_next = arg in SECRET_ARGS
    return redacted


def _copy_stream(source: IO[Any], target: IO[bytes]) -> None:
    sent = 0
    try:
        while True:
            data = source.read(CHUNK_SIZE)
            if not data:
                break
            if isinstance(data, str):
                data = data.encode("utf-8")
            target.write(data)
            sent += len(data)
    except (BrokenPipeError, ValueError):
        # gpg stopped reading, e.g. it rejected the input early
        logger.debug("stdin closed by gpg after %d bytes", sent)
    finally:
        try:
            target.close()
        except OSError:
            logger.debug("error closing gpg stdin", exc_info=True)
    logger.debug("sent %d bytes to gpg stdin", sent)


def _drain(source: IO[bytes], chunks: list[bytes], dest: IO[Any] | None = None) -> None:
    while True:
        chunk = source.read(CHUNK_SIZE)
        if not chunk:
            break
        chunks.append(chunk)
        if dest is not None:
            dest.write(chunk)


def _detach(func: Callable[..., None], *args: Any) -> threading.Thread:
    thread = threading.Thread(target=func, args=args, daemon=True)
    thread.start()
    return thread


class ProcessAdapter:
    """Runs one gpg process and collects everything it writes."""

    def __init__(self, binary: str = "gpg", env: Mapping[str, str] | None = None) -> None:
        self.binary = binary
        self._env = dict(env) if env is not None else os.environ.copy()

    @property
    def env(self) -> dict[str, str]:
        return self._env

    def build_command(self, args: list[str]) -> list[str]:
        return [self.binary] + list(args)

    def run(
        self,
        args: list[str],
        src: InputValue = None,
        dest: IO[bytes] | None = None,
    ) -> ProcessOutcome:
        cmd = self.build_command(args)
        logger.debug("running %s", " ".join(redact_args(cmd)))

        with open_input(src) as source:
            try:
                proc = subprocess.Popen(
                    cmd,
                    # Without a payload, stdin is inherited so gpg can prompt
                    stdin=subprocess.PIPE if source is not None else None,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    env=self._env,
                )
            except FileNotFoundError as e:
                raise ToolNotFoundError(self.binary, cause=e) from e

            out_chunks: list[bytes] = []
            err_chunks: list[bytes] = []

            threads = [
                _detach(_drain, proc.stdout, out_chunks, dest),
                _detach(_drain, proc.stderr, err_chunks),
            ]
            if source is not None:
                threads.append(_detach(_copy_stream, source, proc.stdin))

            for thread in threads:
                thread.join()
            exit_code = proc.wait()

            proc.stdout.close()  # type: ignore[union-attr]
            proc.stderr.close()  # type: ignore[union-attr]

        outcome = ProcessOutcome(
            primary_text=b"".join(out_chunks).decode("utf-8", errors="replace"),
            secondary_text=b"".join(err_chunks).decode("utf-8", errors="replace"),
            exit_code=exit_code,
        )
        logger.debug(
            "gpg exited with %s (%d bytes stdout, %d bytes stderr)",
            exit_code,
            len(outcome.primary_text),
            len(outcome.secondary_text),
        )
        return outcome
