"""Word tokenizer shared by chunking, embedding and ranking."""
import re
from typing import List, Optional

# Punctuation treated as a token separator. Case is left untouched.
PUNCTUATION_PATTERN = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")
WHITESPACE_PATTERN = re.compile(r"\s+")


class Tokenizer:
    """Splits text into word tokens on punctuation and whitespace."""

    def tokenize(self, text: Optional[str]) -> List[str]:
        """
        Tokenize text.

        Args:
            text: Text to tokenize

        Returns:
            Non-empty tokens in order of appearance
        """
        if not text:
            return []
        spaced = PUNCTUATION_PATTERN.sub(" ", text)
        collapsed = WHITESPACE_PATTERN.sub(" ", spaced)
        return [token for token in collapsed.split(" ") if token]

    def count_tokens(self, text: Optional[str]) -> int:
        return len(self.tokenize(text))
