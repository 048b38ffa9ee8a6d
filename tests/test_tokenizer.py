from awesome_search.core.strategies.snippets import SnippetExtractor
from awesome_search.core.strategies.tokenizer import Tokenizer


def test_tokenize_lowercases_and_splits_on_punctuation():
    tokens = Tokenizer().tokenize("Redux-Toolkit: the_official API")
    assert tokens == ["redux", "toolkit", "the", "official", "api"]


def test_tokenize_strips_diacritics():
    assert Tokenizer().tokenize("Café Ñandú") == ["cafe", "nandu"]


def test_tokenize_empty_input():
    tokenizer = Tokenizer()
    assert tokenizer.tokenize(None) == []
    assert tokenizer.tokenize("") == []
    assert tokenizer.tokenize("--- !!! ...") == []


def test_decomposed_text_stays_one_token():
    tokenizer = Tokenizer()
    decomposed = "cre\u0300me bru\u0302le\u0301e"
    composed = "cr\u00e8me br\u00fbl\u00e9e"

    assert tokenizer.tokenize(decomposed) == ["creme", "brulee"]
    assert tokenizer.tokenize(decomposed) == tokenizer.tokenize(composed)
    assert list(tokenizer.spans(decomposed)) == [("creme", 0, 6), ("brulee", 7, 15)]


def test_spans_point_into_original_text():
    text = "Hello, World"
    assert list(Tokenizer().spans(text)) == [("hello", 0, 5), ("world", 7, 12)]


def test_query_terms_drop_repeats_in_order():
    assert Tokenizer().query_terms("redux Redux toolkit REDUX") == ["redux", "toolkit"]


class TestSnippetExtractor:
    def setup_method(self):
        self.extractor = SnippetExtractor(Tokenizer(), max_tokens=8)

    def test_highlights_prefix_matches(self):
        snippet = self.extractor.extract("Helm manages Kubernetes charts", ["kube"])
        assert snippet == "Helm manages <mark>Kubernetes</mark> charts"

    def test_window_around_late_match(self):
        words = [f"word{i}" for i in range(40)]
        words[30] = "target"
        snippet = self.extractor.extract(" ".join(words), ["target"])

        assert snippet.startswith("...")
        assert snippet.endswith("...")
        assert "<mark>target</mark>" in snippet
        assert len(snippet.strip(".").split()) == 8

    def test_window_at_end_has_no_trailing_ellipsis(self):
        words = [f"word{i}" for i in range(20)]
        words[-1] = "target"
        snippet = self.extractor.extract(" ".join(words), ["target"])

        assert snippet.startswith("...")
        assert snippet.endswith("<mark>target</mark>")

    def test_no_match_returns_leading_window(self):
        words = [f"word{i}" for i in range(20)]
        snippet = self.extractor.extract(" ".join(words), ["absent"])

        assert "<mark>" not in snippet
        assert snippet.startswith("word0 ")
        assert snippet.endswith("...")

    def test_uses_given_positions(self):
        text = "redux state redux store"
        snippet = self.extractor.extract(text, ["redux"], positions={2})
        assert snippet == "redux state <mark>redux</mark> store"

    def test_empty_positions_mean_no_highlight(self):
        assert self.extractor.extract("redux state", ["redux"], positions=()) == "redux state"

    def test_highlights_whole_decomposed_word(self):
        snippet = self.extractor.extract("Classic cre\u0300me", ["creme"])
        assert snippet == "Classic <mark>cre\u0300me</mark>"

    def test_collapses_whitespace(self):
        snippet = self.extractor.extract("# Redux\n\nRedux   is\tgreat", ["redux"])
        assert snippet == "<mark>Redux</mark> <mark>Redux</mark> is great"

    def test_no_tokens(self):
        assert self.extractor.extract(None, ["redux"]) is None
        assert self.extractor.extract("  ***  ", ["redux"]) is None

    def test_custom_markers(self):
        extractor = SnippetExtractor(
            Tokenizer(), highlight_open="[", highlight_close="]", ellipsis="…"
        )
        assert extractor.extract("state container", ["state"]) == "[state] container"
