"""
MODULE OVERVIEW:
Incremental line framing for a byte stream.

WHAT IS HAPPENING HERE:
Network reads arrive in arbitrary chunks: a line can be split across two reads,
and one read can hold several lines. The framer keeps everything it was fed in a
single buffer and hands out whole lines only. `take_rest()` lets a caller grab the
whole pending payload in one go, partial trailing line included.

Nothing is ever duplicated or dropped: every `next_line()` result, followed by one
final `take_rest()`, concatenates back to exactly the bytes that were fed in.
"""


class LineFramer:
    def __init__(self):
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> None:
        self._buffer.extend(chunk)

    def next_line(self) -> bytes | None:
        """Return the next `\\n`-terminated line, terminator included, or None if only a partial line is buffered."""
        index = self._buffer.find(b"\n")
        if index < 0:
            return None
        line = bytes(self._buffer[:index + 1])
        del self._buffer[:index + 1]
        return line

    def take_rest(self) -> bytes:
        rest = bytes(self._buffer)
        self._buffer.clear()
        return rest
