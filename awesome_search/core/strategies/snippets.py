import re
from typing import Collection, Optional

from .tokenizer import Tokenizer

_WHITESPACE_RE = re.compile(r"\s+")


class SnippetExtractor:
    """Cuts a highlighted excerpt around the first query match in a text."""

    def __init__(
        self,
        tokenizer: Tokenizer,
        max_tokens: int = 32,
        highlight_open: str = "<mark>",
        highlight_close: str = "</mark>",
        ellipsis: str = "...",
    ):
        """Initialize extractor.

        Args:
            tokenizer: Tokenizer shared with the index.
            max_tokens: Window size in tokens.
            highlight_open: Marker inserted before a matching token.
            highlight_close: Marker inserted after a matching token.
            ellipsis: Marker for a truncated edge.
        """
        self._tokenizer = tokenizer
        self._max_tokens = max(1, max_tokens)
        self._open = highlight_open
        self._close = highlight_close
        self._ellipsis = ellipsis

    def _window(self, n_tokens: int, first_match: Optional[int]) -> tuple[int, int]:
        if first_match is None:
            start = 0
        else:
            lead = self._max_tokens // 4
            start = max(0, min(first_match - lead, n_tokens - self._max_tokens))
        return start, min(n_tokens, start + self._max_tokens)

    def extract(
        self,
        text: Optional[str],
        terms: list[str],
        positions: Optional[Collection[int]] = None,
    ) -> Optional[str]:
        """Build a snippet.

        Args:
            text: README body.
            terms: Query terms, matched as prefixes.
            positions: Token positions of the matches, taken from the postings.
                When omitted, tokens are matched against the terms here.

        Returns:
            Highlighted excerpt, or None when the text has no tokens.
        """
        spans = list(self._tokenizer.spans(text))
        if not spans:
            return None

        if positions is None:
            matches = {
                i for i, (term, _, _) in enumerate(spans)
                if any(term.startswith(q) for q in terms)
            }
        else:
            matches = set(positions)

        first_match = min(matches) if matches else None
        start, end = self._window(len(spans), first_match)

        parts = []
        cursor = spans[start][1]
        for i, (_, tok_start, tok_end) in enumerate(spans[start:end], start):
            if tok_start < cursor:
                continue
            parts.append(text[cursor:tok_start])
            word = text[tok_start:tok_end]
            parts.append(f"{self._open}{word}{self._close}" if i in matches else word)
            cursor = tok_end

        snippet = _WHITESPACE_RE.sub(" ", "".join(parts)).strip()
        if start > 0:
            snippet = self._ellipsis + snippet
        if end < len(spans):
            snippet = snippet + self._ellipsis
        return snippet
