from __future__ import annotations

import math

import pytest

from metasearch.retrieval.similarity import compute_similarity


def test_identical_vectors_score_one():
    assert compute_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)


def test_orthogonal_and_opposite_vectors():
    assert compute_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert compute_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


def test_similarity_ignores_magnitude():
    assert compute_similarity([1.0, 1.0], [10.0, 10.0]) == pytest.approx(1.0)
    assert compute_similarity([3.0, 4.0], [4.0, 3.0]) == pytest.approx(24.0 / 25.0)


def test_zero_vector_scores_zero():
    score = compute_similarity([0.0, 0.0], [1.0, 2.0])
    assert score == 0.0
    assert not math.isnan(score)


def test_length_mismatch_raises():
    with pytest.raises(ValueError):
        compute_similarity([1.0, 2.0], [1.0, 2.0, 3.0])
