from __future__ import annotations

from chat_client.decoder import TextChunkDecoder

TEXT = "Résumé review · 世界 🌍 done"


def _decode_chunks(chunks):
    dec = TextChunkDecoder()
    out = "".join(dec.decode(c) for c in chunks)
    return out + dec.decode(b"", final=True)


def test_split_anywhere_matches_whole_decode():
    """Every two-cut split of the byte string decodes to the same text."""
    data = TEXT.encode("utf-8")
    for i in range(len(data) + 1):
        for j in range(i, len(data) + 1):
            assert _decode_chunks([data[:i], data[i:j], data[j:]]) == TEXT


def test_byte_at_a_time():
    data = TEXT.encode("utf-8")
    assert _decode_chunks([data[i : i + 1] for i in range(len(data))]) == TEXT


def test_incomplete_tail_is_buffered_not_replaced():
    dec = TextChunkDecoder()
    emoji = "🌍".encode("utf-8")
    assert dec.decode(b"ok " + emoji[:2]) == "ok "
    assert dec.pending == emoji[:2]
    assert dec.decode(emoji[2:]) == "🌍"
    assert dec.pending == b""


def test_final_flush_substitutes_instead_of_raising():
    dec = TextChunkDecoder()
    assert dec.decode(b"abc\xe4\xb8") == "abc"
    tail = dec.decode(b"", final=True)
    assert "�" in tail
    assert dec.pending == b""


def test_invalid_bytes_mid_stream_are_substituted():
    dec = TextChunkDecoder()
    assert dec.decode(b"a\xffb") == "a�b"


def test_declared_charset_is_honoured():
    dec = TextChunkDecoder("latin-1")
    assert dec.decode("café".encode("latin-1"), final=True) == "café"


def test_unknown_encoding_falls_back_to_utf8():
    dec = TextChunkDecoder("no-such-codec")
    assert dec.encoding == "utf-8"
    assert dec.decode("é".encode("utf-8"), final=True) == "é"
