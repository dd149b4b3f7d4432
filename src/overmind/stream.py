"""
Line/character stream splitting for worker output.

Worker output is read a line at a time. After the trigger line
("Started\\n") the rest of the following line is read one character at
a time, so progress dots show up as soon as they are printed. The
newline ending that line switches back to line mode.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import IO, Iterator, Optional


class StreamMode(Enum):
    """Granularity the stream is currently read with."""
    LINE = "line"
    CHAR = "char"


@dataclass(frozen=True)
class StreamChunk:
    """A piece of output and the mode it was read in."""
    text: str
    mode: StreamMode


TRIGGER_LINE = "Started\n"


class StreamTransformer:
    """Two-state machine turning a text stream into chunks.

    Example:
        transformer = StreamTransformer()
        for chunk in transformer.chunks(process.stdout):
            print(chunk.text, end="")
    """

    def __init__(self, trigger: str = TRIGGER_LINE, delimiter: str = "\n"):
        self.trigger = trigger
        self.delimiter = delimiter
        self.mode = StreamMode.LINE
        # (mode, piece read) -> next mode
        self._transitions = {
            (StreamMode.LINE, trigger): StreamMode.CHAR,
            (StreamMode.CHAR, delimiter): StreamMode.LINE,
        }

    def reset(self) -> None:
        self.mode = StreamMode.LINE

    def advance(self, piece: str) -> StreamMode:
        """Apply the transition for ``piece`` and return the new mode."""
        self.mode = self._transitions.get((self.mode, piece), self.mode)
        return self.mode

    def read_piece(self, stream: IO[str]) -> str:
        if self.mode is StreamMode.LINE:
            return stream.readline()
        return stream.read(1)

    def chunks(
        self,
        stream: IO[str],
        cancel: Optional[threading.Event] = None,
    ) -> Iterator[StreamChunk]:
        """Yield chunks until end of stream or cancellation.

        Args:
            stream: Text stream with ``readline`` and ``read``
            cancel: Token checked before every read
        """
        while cancel is None or not cancel.is_set():
            piece = self.read_piece(stream)
            if not piece:
                return
            yield StreamChunk(piece, self.mode)
            self.advance(piece)
