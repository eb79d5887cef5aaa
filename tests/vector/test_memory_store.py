"""Tests for the in-memory vector database and shared helpers."""

import numpy as np
import pytest

from agentkit.errors import CollectionNotFoundError
from agentkit.vector.memory import InMemoryVectorDatabase
from agentkit.vector.store import cosine_similarity, split_content


@pytest.fixture
def db() -> InMemoryVectorDatabase:
    return InMemoryVectorDatabase()


def test_cosine_similarity():
    assert cosine_similarity(np.array([1.0, 0.0]), np.array([1.0, 0.0])) == pytest.approx(1.0)
    assert cosine_similarity(np.array([1.0, 0.0]), np.array([0.0, 1.0])) == pytest.approx(0.0)
    assert cosine_similarity(np.array([1.0, 0.0]), np.array([-1.0, 0.0])) == pytest.approx(-1.0)


def test_cosine_similarity_zero_norm_is_zero():
    assert cosine_similarity(np.zeros(3), np.array([1.0, 2.0, 3.0])) == 0.0
    assert cosine_similarity(np.zeros(3), np.zeros(3)) == 0.0


def test_split_content_does_not_mutate():
    metadata = {"content": "text", "source": "a.txt"}

    content, rest = split_content(metadata)

    assert content == "text"
    assert rest == {"source": "a.txt"}
    assert metadata == {"content": "text", "source": "a.txt"}


def test_split_content_non_string_is_kept():
    content, rest = split_content({"content": 42})
    assert content == ""
    assert rest == {"content": 42}


@pytest.mark.asyncio
async def test_search_ranks_by_similarity(db):
    await db.create_collection("c", 2)
    await db.insert_vectors(
        "c",
        ["far", "near", "mid"],
        [[0.0, 1.0], [1.0, 0.0], [1.0, 1.0]],
        [{"content": "far"}, {"content": "near"}, {"content": "mid"}],
    )

    results = await db.search("c", [1.0, 0.0], 2)

    assert [r.chunk_id for r in results] == ["near", "mid"]
    assert results[0].score == pytest.approx(1.0)
    assert results[1].score == pytest.approx(1 / np.sqrt(2))
    assert results[0].content == "near"
    assert results[0].metadata == {}


@pytest.mark.asyncio
async def test_search_breaks_ties_by_id(db):
    await db.create_collection("c", 2)
    await db.insert_vectors(
        "c",
        ["tie-3", "other", "tie-1", "tie-2"],
        [[1.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 0.0]],
        [{}, {}, {}, {}],
    )

    first = await db.search("c", [1.0, 0.0], 0)
    second = await db.search("c", [1.0, 0.0], 0)

    assert [r.chunk_id for r in first] == ["tie-1", "tie-2", "tie-3", "other"]
    assert [r.chunk_id for r in second] == [r.chunk_id for r in first]
    assert [r.score for r in first[:3]] == [first[0].score] * 3


@pytest.mark.asyncio
async def test_search_all_when_top_k_not_positive(db):
    await db.create_collection("c", 2)
    await db.insert_vectors("c", ["a", "b", "c"], [[1.0, 0.0]] * 3, [{}, {}, {}])

    results = await db.search("c", [1.0, 0.0], 0)

    assert [r.chunk_id for r in results] == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_zero_vector_scores_zero(db):
    await db.create_collection("c", 2)
    await db.insert_vectors("c", ["zero", "one"], [[0.0, 0.0], [1.0, 0.0]], [{}, {}])

    results = await db.search("c", [1.0, 0.0], 5)

    assert [(r.chunk_id, r.score) for r in results] == [("one", pytest.approx(1.0)), ("zero", 0.0)]


@pytest.mark.asyncio
async def test_create_and_drop_are_idempotent(db):
    await db.create_collection("c", 2)
    await db.insert_vectors("c", ["a"], [[1.0, 0.0]], [{}])
    await db.create_collection("c", 2)
    assert db.count("c") == 1

    await db.drop_collection("c")
    await db.drop_collection("c")
    assert not db.has_collection("c")


@pytest.mark.asyncio
async def test_invalid_dimension(db):
    with pytest.raises(ValueError):
        await db.create_collection("c", 0)


@pytest.mark.asyncio
async def test_missing_collection(db):
    with pytest.raises(CollectionNotFoundError):
        await db.insert_vectors("missing", ["a"], [[1.0]], [{}])
    with pytest.raises(CollectionNotFoundError):
        await db.search("missing", [1.0], 1)
    with pytest.raises(CollectionNotFoundError):
        await db.delete_vectors("missing", ["a"])


@pytest.mark.asyncio
async def test_length_mismatch(db):
    await db.create_collection("c", 2)
    with pytest.raises(ValueError, match="same length"):
        await db.insert_vectors("c", ["a", "b"], [[1.0, 0.0]], [{}, {}])


@pytest.mark.asyncio
async def test_dimension_mismatch_inserts_nothing(db):
    await db.create_collection("c", 2)
    with pytest.raises(ValueError):
        await db.insert_vectors("c", ["a", "b"], [[1.0, 0.0], [1.0, 0.0, 0.0]], [{}, {}])
    assert db.count("c") == 0

    with pytest.raises(ValueError):
        await db.search("c", [1.0], 1)


@pytest.mark.asyncio
async def test_metadata_is_copied(db):
    await db.create_collection("c", 2)
    metadata = {"content": "text", "tags": ["a"]}

    await db.insert_vectors("c", ["a"], [[1.0, 0.0]], [metadata])
    metadata["tags"].append("b")
    assert metadata["content"] == "text"

    first = await db.search("c", [1.0, 0.0], 1)
    first[0].metadata["tags"].append("c")
    second = await db.search("c", [1.0, 0.0], 1)
    assert second[0].metadata == {"tags": ["a"]}


@pytest.mark.asyncio
async def test_upsert_and_delete(db):
    await db.create_collection("c", 2)
    await db.insert_vectors("c", ["a"], [[1.0, 0.0]], [{"content": "old"}])
    await db.insert_vectors("c", ["a"], [[0.0, 1.0]], [{"content": "new"}])

    results = await db.search("c", [0.0, 1.0], 1)
    assert results[0].content == "new"
    assert db.count("c") == 1

    await db.delete_vectors("c", ["a", "unknown"])
    assert db.count("c") == 0
