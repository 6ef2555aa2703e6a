"""Cursor over one GPMF payload.

A :class:`GpmfStream` walks the KLV tree of a single payload buffer.  The
cursor is a small value: its position is the current record plus an
immutable stack of enclosing levels, so ``stream.copy()`` gives an
independent cursor that can search ahead without disturbing the original.

Typical use, mirroring the GPMF demo tools::

    stream = GpmfStream(payload)
    while stream.find_next("STRM", Levels.RECURSE_LEVELS | Levels.TOLERANT):
        if stream.find_next("GPS5", Levels.RECURSE_LEVELS | Levels.TOLERANT):
            samples = scaled_data(stream)
"""

from __future__ import annotations

import enum
import logging
from typing import Iterator, NamedTuple

from gpmf_extract.config import config
from gpmf_extract.errors import CorruptError
from gpmf_extract.record import (
    HEADER_SIZE,
    Record,
    align4,
    is_plausible_header,
    parse_record,
)

logger = logging.getLogger(__name__)

_PADDING_WORD = b"\x00\x00\x00\x00"


class Levels(enum.Flag):
    CURRENT_LEVEL = 0
    RECURSE_LEVELS = 1
    TOLERANT = 2


class _Level(NamedTuple):
    start: int
    end: int
    container: int | None  # header offset of the enclosing record, None at root


def as_key(key: str | bytes | None) -> str | None:
    """Normalise a FourCC given as ``str`` or ``bytes``."""
    if key is None:
        return None
    if isinstance(key, (bytes, bytearray)):
        key = bytes(key).decode("latin1")
    if len(key) != 4:
        raise ValueError(f"FourCC must be exactly 4 characters, got {key!r}")
    return key


class GpmfStream:
    """Resumable cursor over a GPMF payload buffer."""

    def __init__(
        self,
        buffer: bytes | bytearray | memoryview,
        *,
        max_nest_level: int | None = None,
    ):
        buf = memoryview(buffer).cast("B")
        if len(buf) < HEADER_SIZE:
            raise CorruptError(
                0, f"payload of {len(buf)} bytes is smaller than a record header"
            )
        self._buf = buf
        self._size = len(buf)
        self._max_nest_level = (
            max_nest_level if max_nest_level is not None else config.MAX_NEST_LEVEL
        )
        self._root = _Level(0, len(buf), None)
        self._levels: tuple[_Level, ...] = (self._root,)
        self._record: Record | None = None

    # ------------------------------------------------------------------
    # Cursor state
    # ------------------------------------------------------------------

    @property
    def record(self) -> Record | None:
        """The record under the cursor, ``None`` before the first step."""
        return self._record

    @property
    def level(self) -> int:
        return len(self._levels) - 1

    @property
    def buffer_size(self) -> int:
        return self._size

    def copy(self) -> GpmfStream:
        """Independent cursor at the same position over the same buffer."""
        clone = GpmfStream.__new__(GpmfStream)
        clone._buf = memoryview(self._buf)
        clone._size = self._size
        clone._max_nest_level = self._max_nest_level
        clone._root = self._root
        clone._levels = self._levels
        clone._record = self._record
        return clone

    __copy__ = copy

    def reset(self) -> None:
        """Return to the root, before the first record."""
        self._levels = (self._root,)
        self._record = None

    def close(self) -> None:
        """Release this cursor's view of the buffer; copies stay valid."""
        self._record = None
        self._buf.release()

    def __enter__(self) -> GpmfStream:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"GpmfStream(size={self._size}, level={self.level}, "
            f"record={self._record!r})"
        )

    # ------------------------------------------------------------------
    # Searching
    # ------------------------------------------------------------------

    def find_next(
        self,
        key: str | bytes | None = None,
        scope: Levels = Levels.CURRENT_LEVEL,
    ) -> Record | None:
        """Move forward to the next record with *key* (any record if ``None``).

        With ``RECURSE_LEVELS`` the search enters nested containers and climbs
        back out of them; otherwise it stays among the current siblings.
        Returns ``None`` and leaves the cursor in place when nothing matches.
        """
        target = as_key(key)
        saved = (self._record, self._levels)
        try:
            while self._step(scope):
                if target is None or self._record.key == target:
                    return self._record
        except CorruptError:
            self._record, self._levels = saved
            raise
        self._record, self._levels = saved
        return None

    def find_prev(
        self,
        key: str | bytes | None = None,
        scope: Levels = Levels.CURRENT_LEVEL,
    ) -> Record | None:
        """Move back to the nearest preceding sibling with *key*.

        Only records at the current level that come before the cursor are
        considered; children of sibling containers never match.  With
        ``RECURSE_LEVELS`` the preceding siblings of each enclosing container
        are searched in turn.
        """
        target = as_key(key)
        if self._record is None:
            return None
        levels = self._levels
        limit = self._record.offset
        while True:
            found = self._last_before(levels, limit, target, scope)
            if found is not None:
                self._record, self._levels = found, levels
                return found
            if Levels.RECURSE_LEVELS not in scope or len(levels) == 1:
                return None
            limit = levels[-1].container
            levels = levels[:-1]

    def seek_to_samples(self, scope: Levels = Levels.CURRENT_LEVEL) -> Record | None:
        """Move to the first record that carries sample data.

        Searches inside the current container (the root level on a fresh
        cursor, the following siblings when the cursor is on a data record),
        skipping annotation records and nested containers.
        """
        levels = self._levels
        rec = self._record
        if rec is None:
            pos = levels[-1].start
        elif rec.is_nested:
            entered = self._enter(rec, levels, scope)
            if entered is None:
                return None
            levels = entered
            pos = rec.data_offset
        else:
            pos = rec.offset + rec.padded_size

        while True:
            found = self._record_at(pos, levels, scope)
            if found is None:
                return None
            if found.has_samples:
                self._record, self._levels = found, levels
                return found
            pos = found.offset + found.padded_size

    def iter_records(
        self,
        key: str | bytes | None = None,
        scope: Levels = Levels.CURRENT_LEVEL,
    ) -> Iterator[Record]:
        """Yield every following record matching *key*, moving the cursor."""
        while True:
            record = self.find_next(key, scope)
            if record is None:
                return
            yield record

    # ------------------------------------------------------------------
    # Traversal internals
    # ------------------------------------------------------------------

    def _step(self, scope: Levels) -> bool:
        """Advance one record in traversal order; False at the end of the scope."""
        recurse = Levels.RECURSE_LEVELS in scope
        levels = self._levels
        rec = self._record
        if rec is None:
            pos = levels[-1].start
        elif recurse and rec.is_nested and rec.data_size > 0:
            entered = self._enter(rec, levels, scope)
            if entered is None:
                pos = rec.offset + rec.padded_size
            else:
                levels = entered
                pos = rec.data_offset
        else:
            pos = rec.offset + rec.padded_size

        while True:
            found = self._record_at(pos, levels, scope)
            if found is not None:
                self._record, self._levels = found, levels
                return True
            if not recurse or len(levels) == 1:
                return False
            closed = levels[-1]
            levels = levels[:-1]
            pos = closed.container + HEADER_SIZE + align4(closed.end - closed.start)

    def _enter(
        self, rec: Record, levels: tuple[_Level, ...], scope: Levels
    ) -> tuple[_Level, ...] | None:
        if len(levels) > self._max_nest_level:
            if Levels.TOLERANT not in scope:
                raise CorruptError(
                    rec.offset, f"nesting deeper than {self._max_nest_level} levels"
                )
            logger.debug("Skipping %r nested beyond level %d", rec.key, len(levels))
            return None
        return levels + (
            _Level(rec.data_offset, rec.data_offset + rec.data_size, rec.offset),
        )

    def _record_at(
        self, pos: int, levels: tuple[_Level, ...], scope: Levels
    ) -> Record | None:
        """Parse the first record at or after *pos* in the innermost level."""
        level = levels[-1]
        while True:
            pos = self._skip_padding(pos, level.end)
            if pos >= level.end:
                return None
            try:
                return parse_record(self._buf, pos, level.end, len(levels) - 1)
            except CorruptError as exc:
                if Levels.TOLERANT not in scope:
                    raise
                resumed = self._resync(pos, level.end)
                logger.debug("%s; resuming at offset %d", exc, resumed)
                pos = resumed

    def _last_before(
        self,
        levels: tuple[_Level, ...],
        limit: int,
        target: str | None,
        scope: Levels,
    ) -> Record | None:
        last = None
        pos = levels[-1].start
        while True:
            found = self._record_at(pos, levels, scope)
            if found is None or found.offset >= limit:
                return last
            if target is None or found.key == target:
                last = found
            pos = found.offset + found.padded_size

    def _skip_padding(self, pos: int, end: int) -> int:
        while pos + 4 <= end and self._buf[pos : pos + 4] == _PADDING_WORD:
            pos += 4
        return pos

    def _resync(self, pos: int, end: int) -> int:
        """Find the next plausible record header after a malformed one."""
        candidate = pos + 4
        while candidate + HEADER_SIZE <= end:
            if is_plausible_header(self._buf, candidate, end):
                return candidate
            candidate += 4
        return end
