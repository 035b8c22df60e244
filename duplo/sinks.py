"""Destinations for downloaded file contents."""

import logging
import sys
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .errors import LocalFileError


logger = logging.getLogger("duplo.sinks")


def unique_name(candidate: Union[str, Path]) -> Path:
    """Return candidate, or candidate_1, candidate_2, ... whichever is free."""
    candidate = Path(candidate)
    path = candidate
    counter = 1
    while path.exists():
        path = candidate.with_name(f"{candidate.name}_{counter}")
        counter += 1
    return path


class Sink:
    """Receives a download chunk by chunk."""

    def write(self, chunk: bytes) -> None:
        raise NotImplementedError

    def finalize(self) -> None:
        raise NotImplementedError


class FileSink(Sink):
    """Writes a download into a local file without overwriting anything.

    The target is picked and opened on the first write, so a request that
    fails before any data arrives leaves nothing behind.
    """

    def __init__(self, file_name: str, directory: Union[str, Path] = "."):
        # Only the base name is used, so a server name stays inside directory.
        base_name = Path(file_name).name
        if base_name in ("", ".", ".."):
            base_name = "download"
        self.candidate = Path(directory) / base_name
        self.path: Optional[Path] = None
        self._handle: Optional[BinaryIO] = None

    def _open(self) -> None:
        self.path = unique_name(self.candidate)
        try:
            self._handle = open(self.path, "xb")
        except OSError as e:
            raise LocalFileError(f"Unable to create {self.path}: {e}", str(self.path)) from e
        logger.debug(f"Writing download to {self.path}")

    def write(self, chunk: bytes) -> None:
        if self._handle is None:
            self._open()
        try:
            self._handle.write(chunk)
        except OSError as e:
            raise LocalFileError(f"Unable to write {self.path}: {e}", str(self.path)) from e

    def finalize(self) -> None:
        # Empty downloads still produce a file.
        if self._handle is None:
            self._open()
        self._handle.close()

    def close(self) -> None:
        """Release the handle without finalizing, e.g. after a failed transfer."""
        if self._handle is not None and not self._handle.closed:
            self._handle.close()


class ConsoleSink(Sink):
    """Streams a download straight to the terminal."""

    def __init__(self, stream: Optional[BinaryIO] = None):
        self.stream = stream if stream is not None else sys.stdout.buffer

    def write(self, chunk: bytes) -> None:
        self.stream.write(chunk)

    def finalize(self) -> None:
        self.stream.write(b"\n")
        self.stream.flush()

    def close(self) -> None:
        self.stream.flush()
