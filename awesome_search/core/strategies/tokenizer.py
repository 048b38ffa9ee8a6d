import re
import unicodedata
from typing import Iterator

# Combining mark blocks; decomposed (NFD) letters stay inside their word.
_MARKS = r"\u0300-\u036f\u1ab0-\u1aff\u1dc0-\u1dff\u20d0-\u20ff\ufe20-\ufe2f"

# Letters and digits; underscore, punctuation and whitespace separate tokens.
_TOKEN_RE = re.compile(rf"[^\W_](?:[^\W_]|[{_MARKS}])*")


class Tokenizer:
    """Normalizes and splits text into terms.

    Shared by the index builder and the query engine so both sides agree on
    what a term is. `tokenize` is defined through `spans`, which keeps token
    positions stored in postings aligned with the offsets used for snippets.
    """

    def normalize(self, text: str) -> str:
        """Strip diacritics and lower-case."""
        decomposed = unicodedata.normalize("NFKD", text)
        stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
        return stripped.lower()

    def spans(self, text: str | None) -> Iterator[tuple[str, int, int]]:
        """Yield (term, start, end), offsets pointing into the original text."""
        if not text:
            return
        for match in _TOKEN_RE.finditer(text):
            for term in _TOKEN_RE.findall(self.normalize(match.group(0))):
                yield term, match.start(), match.end()

    def tokenize(self, text: str | None) -> list[str]:
        return [term for term, _, _ in self.spans(text)]

    def query_terms(self, query: str) -> list[str]:
        """Tokenize a query, dropping repeated terms but keeping their order."""
        seen: set[str] = set()
        terms = []
        for term in self.tokenize(query):
            if term not in seen:
                seen.add(term)
                terms.append(term)
        return terms
