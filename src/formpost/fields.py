from __future__ import annotations

import inspect
import mimetypes
import os
import typing

CRLF = "\r\n"
DASHES = "--"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_TYPE_STREAM_SOURCE = typing.Union[
    typing.IO[bytes],
    typing.Iterator[bytes],
    typing.AsyncIterable[bytes],
    typing.Any,
]
_TYPE_FIELD_VALUE = typing.Union[str, bytes, bytearray, memoryview, _TYPE_STREAM_SOURCE]


def guess_content_type(
    filename: str | None, default: str = DEFAULT_CONTENT_TYPE
) -> str:
    """
    Guess the "Content-Type" of a file.

    :param filename:
        The filename to guess the "Content-Type" of using :mod:`mimetypes`.
    :param default:
        If no "Content-Type" can be guessed, default to `default`.
    """
    if filename:
        return mimetypes.guess_type(filename)[0] or default
    return default


def format_header_param(name: str, value: str) -> str:
    """
    Format a single ``Content-Disposition`` parameter as ``name="value"``.

    Every double quote inside ``value`` is escaped as ``\\"``; nothing else
    is touched, so the result is exactly as long as the encoded value plus
    the escapes.

    :param name:
        The name of the parameter, a string expected to be ASCII only.
    :param value:
        The value of the parameter.
    """
    value = value.replace('"', '\\"')
    return f'{name}="{value}"'


class TextValue(typing.NamedTuple):
    text: str

    @property
    def size(self) -> int:
        return len(self.text.encode("utf-8"))


class BytesValue(typing.NamedTuple):
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class StreamValue(typing.NamedTuple):
    #: File object, iterator of chunks or async equivalent.
    source: _TYPE_STREAM_SOURCE
    #: ``True`` when ``source`` can only be read with ``await``.
    is_async: bool
    #: Filesystem path when ``source`` is an opened file.
    path: str | None = None


_TYPE_VALUE = typing.Union[TextValue, BytesValue, StreamValue]


def source_path(source: typing.Any) -> str | None:
    """
    Return the filesystem path a stream was opened from, if any.

    Works for objects returned by :func:`open` and for async wrappers that
    forward ``.name`` (``trio.open_file``). Pseudo names such as
    ``"<stdin>"`` and integer file descriptors are not paths.
    """
    name = getattr(source, "name", None)
    if isinstance(name, os.PathLike):
        name = os.fspath(name)
    if isinstance(name, bytes):
        name = os.fsdecode(name)
    if not isinstance(name, str) or not name:
        return None
    if name.startswith("<") and name.endswith(">"):
        return None
    return name


def to_field_value(value: _TYPE_FIELD_VALUE) -> _TYPE_VALUE:
    """
    Sort a caller supplied value into :class:`TextValue`,
    :class:`BytesValue` or :class:`StreamValue`.

    :raises TypeError: if ``value`` is none of these.
    """
    if isinstance(value, str):
        return TextValue(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BytesValue(bytes(value))

    read = getattr(value, "read", None)
    if callable(read):
        return StreamValue(
            value, inspect.iscoroutinefunction(read), source_path(value)
        )
    if hasattr(value, "__aiter__"):
        return StreamValue(value, True)
    # Containers such as lists are not streams, only iterators are.
    if isinstance(value, typing.Iterator):
        return StreamValue(value, False)

    raise TypeError(f"not expecting type {type(value).__name__} as a field value")


class FormField:
    """
    A single entry of a :class:`~formpost.filepost.FormData`.

    The header text is rendered once, when the field is created, and is
    never touched again: the form's running length was computed from it.

    :param name:
        The name of this field.
    :param value:
        The sorted value, see :func:`to_field_value`.
    :param raw:
        The object the caller appended, handed back by ``get``/``values``.
    :param boundary:
        The boundary of the owning form.
    :param filename:
        An optional filename, already reduced to a basename.
    :param content_type:
        An optional "Content-Type" for the part.
    :param size:
        Byte length of the value, ``None`` if unknown.
    """

    def __init__(
        self,
        name: str,
        value: _TYPE_VALUE,
        raw: typing.Any,
        boundary: str,
        filename: str | None = None,
        content_type: str | None = None,
        size: int | None = None,
    ) -> None:
        self.name = name
        self.value = value
        self.raw = raw
        self.filename = filename
        self.content_type = content_type
        self.size = size
        self.header = self.render_header(boundary)

    def render_header(self, boundary: str) -> str:
        """
        Renders the delimiter line and part headers, up to and including
        the blank line that separates them from the data.
        """
        parts = [format_header_param("name", self.name)]
        if self.filename is not None:
            parts.append(format_header_param("filename", self.filename))

        lines = [
            f"{DASHES}{boundary}",
            "Content-Disposition: form-data; " + "; ".join(parts),
        ]
        if self.content_type:
            lines.append(f"Content-Type: {self.content_type}")

        lines.append(CRLF)
        return CRLF.join(lines)

    @property
    def header_bytes(self) -> bytes:
        return self.header.encode("utf-8")

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, filename={self.filename!r}, "
            f"content_type={self.content_type!r}, size={self.size!r})"
        )
