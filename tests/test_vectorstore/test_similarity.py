"""Tests for cosine similarity and ranking."""

import pytest

from finvec.vectorstore.base import VectorSearchResult
from finvec.vectorstore.exceptions import DimensionMismatchError
from finvec.vectorstore.similarity import cosine_similarities, cosine_similarity, rank


class TestCosineSimilarity:
    """Tests for the pairwise similarity function."""

    def test_identical_vectors(self):
        assert cosine_similarity([0.3, 0.4, 0.5], [0.3, 0.4, 0.5]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1, 2], [-1, -2]) == pytest.approx(-1.0)

    def test_symmetric(self):
        a, b = [0.2, 0.9, -0.4], [0.7, -0.1, 0.3]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_scale_invariant(self):
        assert cosine_similarity([1, 2, 3], [10, 20, 30]) == pytest.approx(1.0)

    def test_zero_vector_scores_zero(self):
        assert cosine_similarity([0, 0, 0], [1, 2, 3]) == 0.0
        assert cosine_similarity([1, 2, 3], [0, 0, 0]) == 0.0

    def test_length_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            cosine_similarity([1, 0, 0], [1, 0])

    def test_empty_vectors(self):
        with pytest.raises(ValueError):
            cosine_similarity([], [])


class TestCosineSimilarities:
    """Tests for the batched form."""

    def test_matches_pairwise(self):
        query = [0.5, 0.5, 0.0]
        vectors = [[1, 0, 0], [0, 1, 0], [0, 0, 1], [1, 1, 0]]

        scores = cosine_similarities(query, vectors)

        for vector, score in zip(vectors, scores):
            assert score == pytest.approx(cosine_similarity(query, vector))

    def test_zero_rows_score_zero(self):
        scores = cosine_similarities([1, 0], [[0, 0], [1, 0]])
        assert scores[0] == 0.0
        assert scores[1] == pytest.approx(1.0)

    def test_zero_query(self):
        assert list(cosine_similarities([0, 0], [[1, 0], [0, 1]])) == [0.0, 0.0]

    def test_no_candidates(self):
        assert len(cosine_similarities([1, 0], [])) == 0

    def test_mismatched_rows(self):
        with pytest.raises(DimensionMismatchError):
            cosine_similarities([1, 0, 0], [[1, 0], [0, 1]])


class TestRank:
    """Tests for result ranking."""

    def test_descending_and_truncated(self):
        results = [
            VectorSearchResult(id="low", score=0.1),
            VectorSearchResult(id="high", score=0.9),
            VectorSearchResult(id="mid", score=0.5),
        ]
        assert [r.id for r in rank(results, 2)] == ["high", "mid"]

    def test_ties_keep_arrival_order(self):
        results = [VectorSearchResult(id=str(i), score=0.5) for i in range(4)]
        assert [r.id for r in rank(results, 4)] == ["0", "1", "2", "3"]
