"""Incremental bytes -> text decoding that survives split multi-byte sequences."""
from __future__ import annotations

import codecs
import logging

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf-8"


class TextChunkDecoder:
    """Decode a byte stream chunk by chunk.

    An incomplete trailing multi-byte sequence is held back and prepended to
    the next chunk, so a character split across two network reads is never
    replaced. On ``final=True`` whatever remains is flushed with U+FFFD
    substitution; decoding never raises.
    """

    def __init__(self, encoding: str | None = None) -> None:
        name = encoding or DEFAULT_ENCODING
        try:
            factory = codecs.getincrementaldecoder(name)
        except LookupError:
            logger.warning("Unknown response encoding %r, falling back to %s", name, DEFAULT_ENCODING)
            name = DEFAULT_ENCODING
            factory = codecs.getincrementaldecoder(name)
        self.encoding = name
        self._decoder = factory(errors="replace")

    @property
    def pending(self) -> bytes:
        """Bytes buffered from an incomplete trailing sequence."""
        buffered, _flag = self._decoder.getstate()
        return bytes(buffered)

    def decode(self, data: bytes = b"", final: bool = False) -> str:
        if final and self.pending:
            logger.debug("Flushing %d undecodable trailing byte(s) with substitution", len(self.pending))
        return self._decoder.decode(data or b"", final)

    def reset(self) -> None:
        self._decoder.reset()
