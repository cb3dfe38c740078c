import math

import pytest

from fieldrag.core.exceptions import DimensionMismatch
from fieldrag.knowledge.vector.search import SimilaritySearch, cosine_similarity
from tests.conftest import QUERY_VECTOR, vector_at


def test_cosine_of_vector_with_itself_is_one():
    vector = [0.3, -1.2, 4.5, 0.0]
    assert math.isclose(cosine_similarity(vector, vector), 1.0, rel_tol=1e-9)


def test_cosine_with_zero_vector_is_zero():
    assert cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0
    assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0


def test_cosine_is_symmetric():
    lhs, rhs = [1.0, 2.0, 3.0], [-2.0, 0.5, 1.0]
    assert math.isclose(cosine_similarity(lhs, rhs), cosine_similarity(rhs, lhs))


def test_cosine_rejects_mismatched_dimensions():
    with pytest.raises(DimensionMismatch) as excinfo:
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
    assert excinfo.value.details == {"lhs": 2, "rhs": 3}


def test_rank_applies_threshold_and_limit(make_document):
    candidates = [
        make_document("a", vector_at(0.9)),
        make_document("b", vector_at(0.2)),
        make_document("c", vector_at(0.7)),
        make_document("d", vector_at(0.5)),
    ]

    results = SimilaritySearch().rank(QUERY_VECTOR, candidates, threshold=0.4, limit=2)

    assert [item.document.id for item in results] == ["a", "c"]
    assert all(item.similarity >= 0.4 for item in results)
    assert len(results) <= 2


def test_rank_breaks_ties_by_newest_then_id(make_document):
    candidates = [
        make_document("old", vector_at(0.8), seconds=0),
        make_document("new", vector_at(0.8), seconds=60),
        make_document("b-same", vector_at(0.8), seconds=30),
        make_document("a-same", vector_at(0.8), seconds=30),
    ]

    results = SimilaritySearch().rank(QUERY_VECTOR, candidates, threshold=0.0, limit=10)

    assert [item.document.id for item in results] == ["new", "a-same", "b-same", "old"]


def test_rank_skips_candidates_with_other_dimension(make_document):
    candidates = [
        make_document("wide", [1.0, 0.0, 0.0]),
        make_document("match", vector_at(0.6)),
    ]

    results = SimilaritySearch().rank(QUERY_VECTOR, candidates, threshold=0.0, limit=5)

    assert [item.document.id for item in results] == ["match"]


def test_rank_returns_empty_when_nothing_clears_threshold(make_document):
    candidates = [make_document(f"doc-{i}", vector_at(0.4)) for i in range(3)]

    assert SimilaritySearch().rank(QUERY_VECTOR, candidates, threshold=0.95, limit=5) == []


@pytest.mark.parametrize("threshold,limit", [(-0.1, 5), (1.5, 5), (0.5, 0)])
def test_rank_validates_arguments(threshold, limit):
    with pytest.raises(ValueError):
        SimilaritySearch().rank(QUERY_VECTOR, [], threshold=threshold, limit=limit)
