"""Boundary between the parser and whatever demultiplexes GPMF payloads."""

from __future__ import annotations

from typing import Protocol, Sequence


class PayloadSource(Protocol):
    """Indexed access to timed GPMF payloads."""

    def payload_count(self) -> int: ...

    def payload_size(self, index: int) -> int: ...

    def payload_bytes(self, index: int) -> memoryview: ...

    def payload_time_range(self, index: int) -> tuple[float, float]: ...

    def close(self) -> None: ...


class MemoryPayloadSource:
    """Payloads already held in memory, e.g. from tests or a previous dump.

    Payload *i* covers ``sum(durations[:i]) .. sum(durations[:i+1])``
    seconds; every payload lasts one second unless *durations* is given.
    """

    def __init__(
        self,
        payloads: Sequence[bytes],
        durations: Sequence[float] | None = None,
    ):
        if durations is not None and len(durations) != len(payloads):
            raise ValueError(
                f"{len(durations)} durations given for {len(payloads)} payloads"
            )
        self._payloads = [bytes(p) for p in payloads]
        self._ranges: list[tuple[float, float]] = []
        t = 0.0
        for duration in durations if durations is not None else [1.0] * len(payloads):
            self._ranges.append((t, t + duration))
            t += duration

    def payload_count(self) -> int:
        return len(self._payloads)

    def payload_size(self, index: int) -> int:
        return len(self._payloads[index])

    def payload_bytes(self, index: int) -> memoryview:
        return memoryview(self._payloads[index])

    def payload_time_range(self, index: int) -> tuple[float, float]:
        return self._ranges[index]

    def close(self) -> None:
        self._payloads = []
        self._ranges = []

    def __enter__(self) -> MemoryPayloadSource:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
