"""Exceptions raised while walking and decoding GPMF payloads."""

from __future__ import annotations


class GpmfError(Exception):
    pass


class CorruptError(GpmfError):
    def __init__(self, offset: int, reason: str) -> None:
        self.offset = offset
        super().__init__(f"corrupt GPMF record at offset {offset}: {reason}")


class UnknownTypeError(GpmfError):
    def __init__(self, type_char: str, *, element: int | None = None) -> None:
        self.type_char = type_char
        self.element = element
        if element is not None:
            msg = f"unknown GPMF type {type_char!r} for element {element}"
        else:
            msg = f"unknown GPMF type {type_char!r}"
        super().__init__(msg)


class BufferTooSmallError(GpmfError):
    def __init__(self, needed: int, available: int) -> None:
        super().__init__(
            f"output buffer holds {available} values, {needed} are required"
        )


class InvalidRangeError(GpmfError):
    def __init__(self, start: int, count: int, repeat: int) -> None:
        super().__init__(
            f"sample range start={start} count={count} is outside 0..{repeat}"
        )


class AnnotationOverflowError(GpmfError):
    def __init__(self, key: str, found: int, limit: int) -> None:
        super().__init__(f"{key} declares {found} entries, limit is {limit}")


class SourceError(RuntimeError):
    pass
