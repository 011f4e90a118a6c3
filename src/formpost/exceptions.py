from __future__ import annotations

# Base Exceptions


class FormPostError(Exception):
    """Base exception used by this module."""

    pass


class StreamConsumedError(FormPostError):
    """Raised when a :class:`~formpost.stream.FormDataStream` is read again
    after it has been consumed. Call :meth:`FormData.stream` for a fresh one."""

    pass


class AsyncSourceError(FormPostError, TypeError):
    """Raised when synchronous production reaches a field whose value can
    only be read asynchronously."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Field {name!r} has an asynchronous source, "
            "use 'async for' to consume this stream"
        )
