from __future__ import annotations

import inspect
import itertools
import logging
import typing
from types import TracebackType

from .exceptions import AsyncSourceError, StreamConsumedError
from .fields import CRLF, BytesValue, FormField, StreamValue, TextValue

log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 2**16

_CRLF_BYTES = CRLF.encode("latin-1")

_SYNC = "sync"
_ASYNC = "async"


def to_bytes(chunk: bytes | bytearray | memoryview | str) -> bytes:
    if isinstance(chunk, bytes):
        return chunk
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    if isinstance(chunk, (bytearray, memoryview)):
        return bytes(chunk)
    raise TypeError(f"not expecting type {type(chunk).__name__} from a stream")


def _literal(value: TextValue | BytesValue) -> bytes:
    if isinstance(value, TextValue):
        return value.text.encode("utf-8")
    return value.data


def _pending_sources(
    current: FormField, remaining: typing.Iterator[FormField]
) -> typing.Iterator[typing.Any]:
    """
    The sources of ``current`` and every field after it that still hold
    resources when production stops early.
    """
    for field in itertools.chain((current,), remaining):
        if isinstance(field.value, StreamValue):
            yield field.value.source


def _close_source(source: typing.Any) -> None:
    close = getattr(source, "close", None)
    if callable(close) and not inspect.iscoroutinefunction(close):
        close()
        return

    # Async file wrappers (trio.open_file) keep the blocking file object
    # around, close that one when there is no loop to await on.
    wrapped = getattr(source, "wrapped", None)
    if wrapped is not None:
        _close_source(wrapped)


async def _aclose_source(source: typing.Any) -> None:
    aclose = getattr(source, "aclose", None)
    if callable(aclose):
        await aclose()
        return

    close = getattr(source, "close", None)
    if callable(close):
        result = close()
        if inspect.isawaitable(result):
            await result


class FormDataStream:
    """
    A one-shot, pull-based ``multipart/form-data`` body.

    Nothing is produced until the consumer asks for it, and stream
    fields are only read one chunk per request, so flow control is
    whatever the consumer applies. The body can be pulled in three ways,
    which share a single position and may not be mixed with the
    asynchronous one:

    - ``for chunk in stream``
    - ``stream.read(amt)``, like a file opened in binary mode
    - ``async for chunk in stream``

    Once exhausted or closed the stream cannot be restarted, ask the form
    for a new one with :meth:`FormData.stream`.

    :param fields:
        The form fields in production order. Only walked lazily.
    :param footer:
        The closing delimiter emitted after the last field.
    :param chunk_size:
        How many bytes to request from file-like sources at a time.
    """

    def __init__(
        self,
        fields: typing.Iterable[FormField],
        footer: bytes,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._fields = fields
        self._footer = footer
        self._chunk_size = chunk_size

        self._mode: str | None = None
        self._done = False
        self._iterator: typing.Generator[bytes, None, None] | None = None
        self._aiterator: typing.AsyncGenerator[bytes, None] | None = None
        self._buffer = bytearray()

    @property
    def closed(self) -> bool:
        return self._done

    def _iter_chunks(self) -> typing.Generator[bytes, None, None]:
        fields = iter(self._fields)
        field: FormField | None = None
        try:
            for field in fields:
                yield field.header_bytes

                value = field.value
                if isinstance(value, StreamValue):
                    if value.is_async:
                        raise AsyncSourceError(field.name)
                    source = value.source
                    try:
                        read = getattr(source, "read", None)
                        if callable(read):
                            while True:
                                chunk = read(self._chunk_size)
                                if not chunk:
                                    break
                                yield to_bytes(chunk)
                        else:
                            for chunk in source:
                                if chunk:
                                    yield to_bytes(chunk)
                    finally:
                        _close_source(source)
                else:
                    data = _literal(value)
                    if data:
                        yield data

                yield _CRLF_BYTES

            field = None
            yield self._footer
        except GeneratorExit:
            if field is not None:
                log.debug("Stream closed while producing field %r", field.name)
            raise
        except Exception:
            if field is not None:
                log.debug("Producing field %r failed", field.name, exc_info=True)
            raise
        finally:
            if field is not None:
                for pending in _pending_sources(field, fields):
                    _close_source(pending)

        self._done = True

    async def _aiter_chunks(self) -> typing.AsyncGenerator[bytes, None]:
        fields = iter(self._fields)
        field: FormField | None = None
        try:
            for field in fields:
                yield field.header_bytes

                value = field.value
                if isinstance(value, StreamValue):
                    source = value.source
                    try:
                        read = getattr(source, "read", None)
                        if callable(read):
                            while True:
                                chunk = read(self._chunk_size)
                                if inspect.isawaitable(chunk):
                                    chunk = await chunk
                                if not chunk:
                                    break
                                yield to_bytes(chunk)
                        elif value.is_async:
                            async for chunk in source:
                                if chunk:
                                    yield to_bytes(chunk)
                        else:
                            for chunk in source:
                                if chunk:
                                    yield to_bytes(chunk)
                    finally:
                        await _aclose_source(source)
                else:
                    data = _literal(value)
                    if data:
                        yield data

                yield _CRLF_BYTES

            field = None
            yield self._footer
        except GeneratorExit:
            if field is not None:
                log.debug("Stream closed while producing field %r", field.name)
            raise
        except Exception:
            if field is not None:
                log.debug("Producing field %r failed", field.name, exc_info=True)
            raise
        finally:
            if field is not None:
                for pending in _pending_sources(field, fields):
                    await _aclose_source(pending)

        self._done = True

    def _start(self, mode: str) -> None:
        if self._mode is None and not self._done:
            log.debug("Starting %s production of a multipart body", mode)
            self._mode = mode
        elif self._mode != mode:
            raise StreamConsumedError(
                f"This stream was already consumed, cannot start {mode} production"
            )

    def _sync_iterator(self) -> typing.Generator[bytes, None, None]:
        self._start(_SYNC)
        if self._iterator is None:
            self._iterator = self._iter_chunks()
        return self._iterator

    def __iter__(self) -> FormDataStream:
        if self._done:
            raise StreamConsumedError("This stream was already consumed")
        self._sync_iterator()
        return self

    def __next__(self) -> bytes:
        if self._buffer:
            data = bytes(self._buffer)
            self._buffer.clear()
            return data
        try:
            return next(self._sync_iterator())
        except Exception:
            self._done = True
            raise

    def read(self, amt: int | None = None) -> bytes:
        """
        Read and return up to ``amt`` bytes of the body, or everything that
        is left when ``amt`` is ``None``. Returns ``b""`` once the body has
        been read completely.
        """
        if self._done and not self._buffer:
            return b""

        iterator = self._sync_iterator()
        try:
            if amt is None or amt < 0:
                data = bytes(self._buffer) + b"".join(iterator)
                self._buffer.clear()
                return data

            while len(self._buffer) < amt:
                chunk = next(iterator, None)
                if chunk is None:
                    break
                self._buffer += chunk
        except Exception:
            # A truncated body must not read as a clean end of stream.
            self._buffer.clear()
            self._done = True
            raise

        data = bytes(self._buffer[:amt])
        del self._buffer[:amt]
        return data

    def __aiter__(self) -> FormDataStream:
        if self._done:
            raise StreamConsumedError("This stream was already consumed")
        self._start(_ASYNC)
        if self._aiterator is None:
            self._aiterator = self._aiter_chunks()
        return self

    async def __anext__(self) -> bytes:
        if self._aiterator is None:
            self.__aiter__()
        assert self._aiterator is not None
        try:
            return await self._aiterator.__anext__()
        except Exception:
            self._done = True
            raise

    def close(self) -> None:
        """
        Stop producing the body. The source of a stream field that is being
        forwarded is closed.
        """
        if self._iterator is not None:
            self._iterator.close()
        self._buffer.clear()
        self._done = True

    async def aclose(self) -> None:
        """Stop producing the body, closing the source being forwarded."""
        if self._aiterator is not None:
            await self._aiterator.aclose()
        self.close()

    def __enter__(self) -> FormDataStream:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    async def __aenter__(self) -> FormDataStream:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()
