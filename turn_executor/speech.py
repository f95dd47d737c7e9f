"""Speech capability seam for the turn executor."""
from __future__ import annotations

from typing import List, Protocol

SPEECH_DELIMITERS = ("。", "！", "？", "、", "．", "\n")
MAX_CHUNK_CHARS = 100


class SpeechCapability(Protocol):  # Synthesis plus recognition, e.g. a browser or OS bridge
    def is_supported(self) -> bool: ...

    async def speak(self, text: str) -> None: ...

    async def listen(self) -> str: ...

    def stop(self) -> None: ...


class NoSpeech:
    """Text mode: nothing is spoken and recognition yields no text."""

    def is_supported(self) -> bool:
        return False

    async def speak(self, text: str) -> None:
        return None

    async def listen(self) -> str:
        return ""

    def stop(self) -> None:
        return None


def split_for_speech(text: str, max_len: int = MAX_CHUNK_CHARS) -> List[str]:
    """Cut ``text`` into chunks of at most ``max_len`` characters.

    Each cut is made just after the last sentence or clause delimiter that
    fits; a run without delimiters is cut hard at ``max_len``.
    """

    if max_len < 1:
        raise ValueError("max_len must be positive")
    chunks: List[str] = []
    remaining = (text or "").strip()
    while remaining:
        if len(remaining) <= max_len:
            chunks.append(remaining)
            break
        cut = 0
        for pos in range(max_len - 1, -1, -1):
            if remaining[pos] in SPEECH_DELIMITERS:
                cut = pos + 1
                break
        if cut <= 0:
            cut = max_len
        chunks.append(remaining[:cut])
        remaining = remaining[cut:].strip()
    return [chunk for chunk in chunks if chunk]


__all__ = ["MAX_CHUNK_CHARS", "NoSpeech", "SPEECH_DELIMITERS", "SpeechCapability", "split_for_speech"]
