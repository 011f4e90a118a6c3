from __future__ import annotations

import binascii
import logging
import os
import typing

from ._collections import FieldStore
from .fields import (
    CRLF,
    DASHES,
    DEFAULT_CONTENT_TYPE,
    _TYPE_FIELD_VALUE,
    FormField,
    StreamValue,
    guess_content_type,
    to_field_value,
)
from .stream import DEFAULT_CHUNK_SIZE, FormDataStream

log = logging.getLogger(__name__)

BOUNDARY_PREFIX = "----FormpostFormBoundary"

_TYPE_FIELDS = typing.Union[
    typing.Sequence[typing.Tuple[str, _TYPE_FIELD_VALUE]],
    typing.Mapping[str, _TYPE_FIELD_VALUE],
]


def choose_boundary() -> str:
    """
    A fresh boundary: the fixed prefix followed by 14 random bytes as 28
    lowercase hex characters.
    """
    return BOUNDARY_PREFIX + binascii.hexlify(os.urandom(14)).decode()


class FormData:
    """
    An ordered set of form fields, encoded lazily as ``multipart/form-data``.

    Fields are appended with :meth:`append`; the encoded body is produced
    on demand by :meth:`stream`, and :attr:`headers` holds what has to be
    sent along with it. Basic usage::

        >>> form = FormData()
        >>> form.append("comment", "Nice picture")
        >>> form.append("picture", open("cat.jpg", "rb"))
        >>> http.request(
        ...     "POST", url, headers=form.headers, body=form.stream()
        ... )

    :param content_length_header:
        Whether :attr:`headers` carries "Content-Length" once the length of
        the body is known. ``True`` by default.
    :param boundary:
        The boundary to delimit parts with. A random one is generated with
        :func:`choose_boundary` if not specified.
    :param chunk_size:
        Number of bytes requested at a time from file-like field values.
    """

    def __init__(
        self,
        content_length_header: bool = True,
        *,
        boundary: str | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.boundary = boundary if boundary is not None else choose_boundary()
        self.content_length_header = content_length_header
        self.chunk_size = chunk_size

        self._fields = FieldStore()
        self._footer = f"{DASHES}{self.boundary}{DASHES}{CRLF}{CRLF}".encode()

        #: Byte length of the encoded body, ``None`` once any field was
        #: appended without a known size. Only ever grows: :meth:`delete`
        #: does not subtract the removed fields.
        self.length: int | None = len(self._footer)

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    @property
    def headers(self) -> dict[str, str]:
        """
        The request headers for this body, built anew on every access.
        """
        headers = {"Content-Type": self.content_type}
        if self.content_length_header and self.length is not None:
            headers["Content-Length"] = str(self.length)
        return headers

    def append(
        self,
        name: str,
        value: _TYPE_FIELD_VALUE,
        filename: str | None = None,
        content_type: str | None = None,
        size: int | None = None,
    ) -> None:
        """
        Append a field, keeping any field already stored under ``name``.

        :param name:
            The field name.
        :param value:
            ``str``, ``bytes``-like, a binary file object, a sync iterator or an
            async iterable of ``bytes`` chunks. Lists and other containers
            are rejected.
        :param filename:
            The filename sent for the part. Defaults to the basename of the
            file a value was opened from.
        :param content_type:
            The "Content-Type" of the part. When there is a filename and no
            type, it is guessed from the filename's extension.
        :param size:
            Byte length of a stream value. Ignored for ``str`` and ``bytes``
            values. For opened files it defaults to the size on disk, which
            is looked up right now, blocking. Other streams without a size
            leave :attr:`length` unknown for good.

        :raises OSError: if the file behind ``value`` cannot be stat'ed.
        """
        field_value = to_field_value(value)

        if isinstance(field_value, StreamValue):
            if field_value.path is not None:
                if not filename:
                    filename = field_value.path
                if size is None:
                    size = os.stat(field_value.path).st_size
                    log.debug("Size of %r is %d bytes", field_value.path, size)
        else:
            size = field_value.size

        if filename:
            filename = os.path.basename(filename)
            content_type = content_type or guess_content_type(
                filename, DEFAULT_CONTENT_TYPE
            )
        else:
            filename = None
            content_type = content_type or None

        field = FormField(
            name,
            field_value,
            value,
            self.boundary,
            filename=filename,
            content_type=content_type,
            size=size,
        )

        if self.length is not None:
            if size is None:
                log.debug("Field %r has no size, body length is now unknown", name)
                self.length = None
            else:
                self.length += len(field.header_bytes) + len(CRLF) + size

        self._fields.add(field)
        log.debug("Appended %r", field)

    def get(self, name: str) -> list[typing.Any] | None:
        """
        Return all the values appended under ``name``, in order, or ``None``
        if no field was appended with that name.
        """
        fields = self._fields.getlist(name)
        if fields is None:
            return None
        return [field.raw for field in fields]

    get_all = get

    def has(self, name: str) -> bool:
        return name in self._fields

    def delete(self, name: str) -> None:
        """
        Remove every value appended under ``name``; no-op if there is none.

        :attr:`length` is left as it is.
        """
        self._fields.discard(name)

    def keys(self) -> typing.Iterator[str]:
        yield from self._fields

    def values(self) -> typing.Iterator[typing.Any]:
        for field in self._fields.iterfields():
            yield field.raw

    def entries(self) -> typing.Iterator[tuple[str, typing.Any]]:
        for field in self._fields.iterfields():
            yield field.name, field.raw

    items = entries

    def fields(self) -> typing.Iterator[FormField]:
        """Iterate over the stored :class:`~formpost.fields.FormField` records."""
        return self._fields.iterfields()

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __len__(self) -> int:
        return len(self._fields)

    def __iter__(self) -> typing.Iterator[tuple[str, typing.Any]]:
        return self.entries()

    def stream(self) -> FormDataStream:
        """
        A new lazy stream over the encoded body, starting from the first
        field. The stream is one-shot; call this again to re-encode.
        """
        return FormDataStream(self._fields.iterfields(), self._footer, self.chunk_size)

    def __aiter__(self) -> FormDataStream:
        return self.stream().__aiter__()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(boundary={self.boundary!r}, length={self.length!r})"


def encode_multipart_formdata(
    fields: _TYPE_FIELDS, boundary: str | None = None
) -> tuple[bytes, str]:
    """
    Encode a dictionary of ``fields`` using the multipart/form-data MIME format.

    :param fields:
        Dictionary of fields or list of ``(name, value)`` tuples. Values are
        anything :meth:`FormData.append` accepts; synchronous sources only.

    :param boundary:
        If not specified, then a random boundary will be generated using
        :func:`formpost.filepost.choose_boundary`.

    :returns: The encoded body and its "Content-Type".
    """
    form = FormData(boundary=boundary)

    iterable: typing.Iterable[tuple[str, _TYPE_FIELD_VALUE]]
    if isinstance(fields, typing.Mapping):
        iterable = fields.items()
    else:
        iterable = fields

    for name, value in iterable:
        form.append(name, value)

    with form.stream() as body:
        return body.read(), form.content_type
