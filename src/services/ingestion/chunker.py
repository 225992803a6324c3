"""Text chunking with overlapping windows and paragraph boundary preservation.

Splits document text into :class:`~src.models.ingestion.Chunk` objects
sized for embedding models.  Sizes are expressed in tokens but measured in
characters (``chars_per_token``, default 4) since no tokenizer is assumed.

The chunking strategy has two design goals:

1. **Boundary-preserving** -- Text is cut into *segments* (paragraphs;
   sentences for paragraphs over budget; fixed-width pieces for sentences
   still over budget) and chunks are packed from whole segments only.

2. **Overlapping windows** -- After a chunk closes, packing resumes a few
   segments back so that consecutive chunks share roughly
   ``overlap_tokens`` worth of text.

Whitespace is collapsed before measuring, so every length here refers to
normalized text.
"""

from __future__ import annotations

import re

import structlog

from src.config.settings import Settings
from src.models.ingestion import Chunk
from src.services.ingestion import identity
from src.utils.errors import ConfigurationError
from src.utils.text_normalizer import normalize, split_paragraphs

logger = structlog.get_logger(logger_name=__name__)

_SENTENCE_END = re.compile(r"[.!?](?:\s|$)")


class TextChunker:
    """Splits text into overlapping chunks within a token-size band.

    Parameters
    ----------
    chars_per_token:
        Characters assumed per token (default 4).
    target_tokens_min:
        Smallest acceptable non-final chunk, in tokens (default 300).
    target_tokens_max:
        Hard upper bound per chunk, in tokens (default 500).
    overlap_tokens:
        Approximate overlap between consecutive chunks (default 50).

    Raises
    ------
    ConfigurationError
        If any value is non-positive (overlap may be 0), if
        ``target_tokens_min > target_tokens_max``, or if the overlap is not
        smaller than the maximum.
    """

    def __init__(
        self,
        chars_per_token: int = 4,
        target_tokens_min: int = 300,
        target_tokens_max: int = 500,
        overlap_tokens: int = 50,
    ) -> None:
        if chars_per_token <= 0 or target_tokens_min <= 0 or target_tokens_max <= 0:
            raise ConfigurationError(
                message="Chunk sizes and chars_per_token must be positive"
            )
        if target_tokens_min > target_tokens_max:
            raise ConfigurationError(
                message=(
                    f"target_tokens_min ({target_tokens_min}) exceeds "
                    f"target_tokens_max ({target_tokens_max})"
                )
            )
        if overlap_tokens < 0 or overlap_tokens >= target_tokens_max:
            raise ConfigurationError(
                message=f"overlap_tokens must be in [0, {target_tokens_max})"
            )

        self._min_chars = target_tokens_min * chars_per_token
        self._max_chars = target_tokens_max * chars_per_token
        self._overlap_chars = overlap_tokens * chars_per_token

    @classmethod
    def from_settings(cls, settings: Settings) -> TextChunker:
        return cls(
            chars_per_token=settings.chunk_chars_per_token,
            target_tokens_min=settings.chunk_target_tokens_min,
            target_tokens_max=settings.chunk_target_tokens_max,
            overlap_tokens=settings.chunk_overlap_tokens,
        )

    @property
    def min_chars(self) -> int:
        return self._min_chars

    @property
    def max_chars(self) -> int:
        return self._max_chars

    @property
    def overlap_chars(self) -> int:
        return self._overlap_chars

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(self, text: str | None) -> list[str]:
        """Split *text* into chunk texts in document order.

        Blank input returns an empty list.  Text that fits ``max_chars``
        after normalization is returned whole as a single chunk.
        """
        normalized = normalize(text)
        if not normalized:
            return []
        if len(normalized) <= self._max_chars:
            return [normalized]

        segments = self._segment(text or "")
        return self._pack(segments)

    def chunk(self, text: str | None, document_id: str) -> list[Chunk]:
        """Split *text* into :class:`Chunk` objects stamped with deterministic ids."""
        chunks = [
            Chunk(
                chunk_id=identity.assign(document_id, index),
                document_id=document_id,
                chunk_index=index,
                text=chunk_text,
            )
            for index, chunk_text in enumerate(self.split(text))
        ]

        logger.debug(
            "chunking_complete",
            document_id=document_id,
            num_chunks=len(chunks),
            avg_chars=sum(c.char_length for c in chunks) // len(chunks) if chunks else 0,
        )
        return chunks

    # ------------------------------------------------------------------
    # Segmentation
    # ------------------------------------------------------------------

    def _segment(self, text: str) -> list[str]:
        """Cut *text* into segments no longer than ``max_chars``."""
        segments: list[str] = []
        for paragraph in split_paragraphs(text):
            if len(paragraph) <= self._max_chars:
                segments.append(paragraph)
                continue
            for sentence in self._split_sentences(paragraph):
                if len(sentence) <= self._max_chars:
                    segments.append(sentence)
                else:
                    segments.extend(self._hard_split(sentence))
        return segments

    @staticmethod
    def _split_sentences(text: str) -> list[str]:
        """Split at ``.``, ``!`` or ``?`` followed by whitespace or end-of-string."""
        sentences: list[str] = []
        last = 0
        for match in _SENTENCE_END.finditer(text):
            end = match.end()
            sentence = text[last:end].strip()
            if sentence:
                sentences.append(sentence)
            last = end

        remainder = text[last:].strip()
        if remainder:
            sentences.append(remainder)

        return sentences if sentences else [text]

    def _hard_split(self, text: str) -> list[str]:
        """Cut *text* every ``max_chars`` characters."""
        pieces = (text[i : i + self._max_chars].strip() for i in range(0, len(text), self._max_chars))
        return [p for p in pieces if p]

    # ------------------------------------------------------------------
    # Packing
    # ------------------------------------------------------------------

    def _pack(self, segments: list[str]) -> list[str]:
        """Greedily pack whole segments into chunks with overlap.

        Each iteration closes one chunk ``segments[start:end]``.  The next
        start is strictly greater than the current one and no later than
        ``end``, and the next chunk always reaches past ``end``, so the
        loop terminates after at most ``len(segments)`` iterations.
        """
        chunks: list[str] = []
        total = len(segments)
        start = 0
        previous_start = -1

        while True:
            end, length = self._fill(segments, start)
            if end < total and length < self._min_chars:
                start, length = self._extend_back(segments, start, previous_start, length)
            chunks.append(" ".join(segments[start:end]))

            if end >= total:
                break
            previous_start = start
            start = self._next_start(segments, start, end)

        return chunks

    def _fill(self, segments: list[str], start: int) -> tuple[int, int]:
        """Return ``(end, length)`` of the longest run from *start* fitting ``max_chars``."""
        end = start
        length = 0
        while end < len(segments):
            added = len(segments[end]) + (1 if end > start else 0)
            if length + added > self._max_chars:
                break
            length += added
            end += 1
        return end, length

    def _extend_back(
        self, segments: list[str], start: int, previous_start: int, length: int
    ) -> tuple[int, int]:
        """Grow an undersized chunk backwards over already-emitted segments.

        A short non-final chunk is never dropped, since its new segments
        appear nowhere else.  It is widened toward ``min_chars`` instead,
        staying strictly after the previous chunk's start.
        """
        while start - 1 > previous_start and length < self._min_chars:
            added = len(segments[start - 1]) + 1
            if length + added > self._max_chars:
                break
            length += added
            start -= 1
        return start, length

    def _next_start(self, segments: list[str], start: int, end: int) -> int:
        """Back up from *end* over whole segments to cover ``overlap_chars``.

        Backs up by at least one segment where possible, never to or
        before *start*, and never so far that ``segments[end]`` would no
        longer fit in the next chunk.
        """
        if self._overlap_chars == 0:
            return end

        room = self._max_chars - len(segments[end]) - 1
        back = end
        covered = 0
        while back - 1 > start:
            added = len(segments[back - 1]) + 1
            if covered + added > room:
                break
            covered += added
            back -= 1
            if covered >= self._overlap_chars:
                break
        return back
