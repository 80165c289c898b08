"""Chunking engine that packs page text into token-budgeted chunks."""
import logging
import re
from typing import Iterator, List, Optional

from models.chunk import Chunk
from services.tokenizer import Tokenizer
from config import CHUNK_SIZE

logger = logging.getLogger(__name__)

PARAGRAPH_SPLIT = re.compile(r"\n+")
SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


class ChunkingEngine:
    """Segments cleaned page text into chunks bounded by a token budget."""

    def __init__(self, tokenizer: Optional[Tokenizer] = None, chunk_size: int = CHUNK_SIZE):
        """
        Initialize ChunkingEngine.

        Args:
            tokenizer: Tokenizer used to measure paragraphs and sentences
            chunk_size: Default maximum chunk size in tokens
        """
        self.tokenizer = tokenizer or Tokenizer()
        self.chunk_size = chunk_size

    def chunk_text(
        self,
        text: str,
        max_tokens: Optional[int] = None,
        source: Optional[str] = None
    ) -> List[Chunk]:
        """
        Chunk text into a list of Chunk objects.

        Ids are the zero-based positions in the output, as strings. Token
        sequences are cached on each chunk so indexing does not re-tokenize.

        Args:
            text: Cleaned page text
            max_tokens: Maximum tokens per chunk (defaults to CHUNK_SIZE)
            source: Optional source identifier stamped on every chunk

        Returns:
            List of chunks, empty for empty input
        """
        chunks = [
            Chunk.build(segment, self.tokenizer.tokenize, position=position, source=source)
            for position, segment in enumerate(self.iter_chunks(text, max_tokens))
        ]
        logger.info(f"Created {len(chunks)} chunks from {len(text or '')} characters")
        return chunks

    def iter_chunks(self, text: str, max_tokens: Optional[int] = None) -> Iterator[str]:
        """
        Lazily yield chunk texts.

        Paragraphs (newline runs) are packed greedily while they fit. A
        paragraph over budget is packed sentence by sentence, and a sentence
        over budget is cut into groups of exactly ``max_tokens`` tokens.
        Pending text is always flushed before an oversized unit is split, so
        chunk order follows the input.

        Args:
            text: Text to chunk
            max_tokens: Maximum tokens per chunk (defaults to CHUNK_SIZE)

        Yields:
            Non-blank chunk texts in input order

        Raises:
            ValueError: If max_tokens is smaller than 1
        """
        if max_tokens is None:
            max_tokens = self.chunk_size
        if max_tokens < 1:
            raise ValueError("max_tokens must be positive")
        if not text:
            return

        count = self.tokenizer.count_tokens
        current = ""
        current_count = 0

        for paragraph in PARAGRAPH_SPLIT.split(text):
            paragraph_count = count(paragraph)

            if paragraph_count > max_tokens:
                if current.strip():
                    yield current
                current, current_count = "", 0

                for sentence in SENTENCE_SPLIT.split(paragraph):
                    sentence_count = count(sentence)

                    if sentence_count > max_tokens:
                        if current.strip():
                            yield current
                        current, current_count = "", 0
                        yield from self._split_tokens(sentence, max_tokens)
                    elif current_count + sentence_count > max_tokens:
                        if current.strip():
                            yield current
                        current, current_count = sentence, sentence_count
                    else:
                        current += (" " if current else "") + sentence
                        current_count += sentence_count

            elif current_count + paragraph_count > max_tokens:
                if current.strip():
                    yield current
                current, current_count = paragraph, paragraph_count
            else:
                current += ("\n" if current else "") + paragraph
                current_count += paragraph_count

        if current.strip():
            yield current

    def _split_tokens(self, sentence: str, max_tokens: int) -> Iterator[str]:
        tokens = self.tokenizer.tokenize(sentence)
        for start in range(0, len(tokens), max_tokens):
            yield " ".join(tokens[start:start + max_tokens])
