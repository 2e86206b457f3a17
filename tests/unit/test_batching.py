"""Unit tests for embedding request batching."""

import pytest

from src.embedding.batching import MIN_TEXT_LENGTH, batch_texts, is_embeddable
from src.errors import InvalidInputError


class TestIsEmbeddable:
    def test_threshold_is_exclusive(self):
        assert not is_embeddable("a" * MIN_TEXT_LENGTH)
        assert is_embeddable("a" * (MIN_TEXT_LENGTH + 1))

    def test_whitespace_is_trimmed(self):
        assert not is_embeddable("   short    ")

    def test_empty(self):
        assert not is_embeddable("")


class TestBatchTexts:
    def test_groups_in_order(self):
        texts = [f"loan document text {i}" for i in range(5)]
        batches = batch_texts(texts, batch_size=2)
        assert batches == [texts[0:2], texts[2:4], texts[4:5]]

    def test_drops_short_texts(self):
        texts = ["tiny", "an insurance policy clause", "ok"]
        assert batch_texts(texts, batch_size=10) == [["an insurance policy clause"]]

    def test_omits_batches_left_empty(self):
        texts = ["a", "b", "a sufficiently long text"]
        assert batch_texts(texts, batch_size=2) == [["a sufficiently long text"]]

    def test_empty_input_raises(self):
        with pytest.raises(InvalidInputError):
            batch_texts([])

    def test_non_positive_batch_size_raises(self):
        with pytest.raises(InvalidInputError):
            batch_texts(["a sufficiently long text"], batch_size=0)
