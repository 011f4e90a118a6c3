from __future__ import annotations

import typing
from pathlib import Path

import pytest
from hypothesis import settings

BOUNDARY = "!! test boundary !!"

FILE_CONTENT = b"All work and no play makes Jack a dull boy.\n" * 64

settings.register_profile("ci", derandomize=True, print_blob=True)


@pytest.fixture
def datafile(tmp_path: Path) -> Path:
    path = tmp_path / "report.txt"
    path.write_bytes(FILE_CONTENT)
    return path


class TrackingIterator:
    """An iterable of chunks that remembers whether it was closed."""

    def __init__(self, chunks: typing.Iterable[bytes]) -> None:
        self._chunks = iter(chunks)
        self.closed = False
        self.served = 0

    def __iter__(self) -> TrackingIterator:
        return self

    def __next__(self) -> bytes:
        chunk = next(self._chunks)
        self.served += 1
        return chunk

    def close(self) -> None:
        self.closed = True
