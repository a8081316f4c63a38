"""Readable handles for the business document to be sent."""

from __future__ import annotations

import abc
import io
from pathlib import Path
from typing import BinaryIO


class ReadableResource(abc.ABC):
    """Something that may or may not exist and can be opened for reading."""

    @property
    @abc.abstractmethod
    def path(self) -> str:
        """Human-readable location, used in log and error messages."""

    @abc.abstractmethod
    def exists(self) -> bool: ...

    @abc.abstractmethod
    def open(self) -> BinaryIO:
        """Return a fresh binary stream. The caller closes it."""

    def read_bytes(self) -> bytes:
        with self.open() as stream:
            return stream.read()


class FileSystemResource(ReadableResource):
    def __init__(self, file: str | Path) -> None:
        self._file = Path(file)

    @property
    def path(self) -> str:
        return str(self._file.absolute())

    def exists(self) -> bool:
        return self._file.exists()

    def open(self) -> BinaryIO:
        return self._file.open("rb")

    def __repr__(self) -> str:
        return f"FileSystemResource({self.path!r})"


class ByteArrayResource(ReadableResource):
    """In-memory content. Always exists."""

    def __init__(self, data: bytes, *, path: str = "in-memory byte array") -> None:
        self._data = bytes(data)
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def exists(self) -> bool:
        return True

    def open(self) -> BinaryIO:
        return io.BytesIO(self._data)

    def __repr__(self) -> str:
        return f"ByteArrayResource({len(self._data)} bytes)"


def as_resource(document: ReadableResource | str | Path | bytes | bytearray | None) -> ReadableResource | None:
    """Coerce a path, raw bytes or resource into a :class:`ReadableResource`.

    ``None`` passes through unchanged so that absence is reported at
    verification time, not here.
    """
    if document is None or isinstance(document, ReadableResource):
        return document
    if isinstance(document, (bytes, bytearray)):
        return ByteArrayResource(document)
    if isinstance(document, (str, Path)):
        return FileSystemResource(document)
    raise TypeError(f"Unsupported business document type: {type(document).__name__}")
