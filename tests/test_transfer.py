"""Tests for knowledge export and validated bulk import."""

from __future__ import annotations

import json

import pytest

from tallman_db.apis import (
    export_knowledge,
    export_knowledge_file,
    import_knowledge,
    import_knowledge_file,
    parse_knowledge_payload,
)
from tallman_db.errors import UniqueKeyViolation, ValidationError
from tallman_db.repositories import KnowledgeItem, KnowledgeRepository


@pytest.fixture
def repo(knowledge_store) -> KnowledgeRepository:
    return KnowledgeRepository(knowledge_store)


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


class TestImport:
    def test_valid_payload(self, repo) -> None:
        payload = json.dumps(
            [
                {"content": "Branch opens at 7am", "timestamp": 10},
                {"content": "Delivery is free over $500", "timestamp": 11},
            ]
        )
        assert import_knowledge(repo, payload) == 2
        assert repo.get(11).content == "Delivery is free over $500"

    def test_decoded_list_accepted(self, repo) -> None:
        assert import_knowledge(repo, [{"content": "x", "timestamp": 1}]) == 1

    def test_empty_array(self, repo) -> None:
        assert import_knowledge(repo, "[]") == 0
        assert repo.count() == 0

    @pytest.mark.parametrize(
        "payload",
        [
            "not json",
            '{"content": "x", "timestamp": 1}',
            '[{"content": "x"}]',
            '[{"content": "x", "timestamp": "1"}]',
            '[{"content": "x", "timestamp": true}]',
            '[{"content": 5, "timestamp": 1}]',
            '["just a string"]',
            '[{"content": "huge", "timestamp": 9223372036854775808}]',
            '[{"content": "tiny", "timestamp": -9223372036854775809}]',
        ],
    )
    def test_invalid_payload_writes_nothing(self, repo, payload) -> None:
        with pytest.raises(ValidationError):
            import_knowledge(repo, payload)
        assert repo.count() == 0

    def test_all_problems_reported(self) -> None:
        payload = [
            {"content": "ok", "timestamp": 1},
            {"content": "no timestamp"},
            "scalar",
        ]
        with pytest.raises(ValidationError) as info:
            parse_knowledge_payload(payload)
        errors = info.value.errors
        assert len(errors) == 2
        assert errors[0].startswith("item 1: timestamp")
        assert errors[1] == "item 2: expected an object"

    def test_one_bad_element_rejects_batch(self, repo) -> None:
        payload = [{"content": "good", "timestamp": 1}, {"content": "bad", "timestamp": "x"}]
        with pytest.raises(ValidationError):
            import_knowledge(repo, payload)
        assert repo.get(1) is None

    def test_existing_timestamp_rejects_batch(self, repo) -> None:
        repo.add(KnowledgeItem(content="existing", timestamp=2))
        payload = [{"content": "a", "timestamp": 1}, {"content": "b", "timestamp": 2}]
        with pytest.raises(UniqueKeyViolation):
            import_knowledge(repo, payload)
        assert repo.count() == 1
        assert repo.get(2).content == "existing"


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


class TestExport:
    def test_sorted_by_timestamp(self, repo) -> None:
        repo.bulk_add(
            [
                KnowledgeItem(content="c", timestamp=30),
                KnowledgeItem(content="a", timestamp=10),
                KnowledgeItem(content="b", timestamp=20),
            ]
        )
        data = json.loads(export_knowledge(repo))
        assert [d["timestamp"] for d in data] == [10, 20, 30]
        assert data[0] == {"content": "a", "timestamp": 10}

    def test_empty_store(self, repo) -> None:
        assert json.loads(export_knowledge(repo)) == []

    def test_file_round_trip(self, repo, tmp_path, sample_items) -> None:
        repo.bulk_add(sample_items)
        path = export_knowledge_file(repo, tmp_path / "out" / "knowledge.json")
        assert path.exists()

        repo.clear()
        assert import_knowledge_file(repo, path) == 3
        assert set(repo.get_all()) == set(sample_items)

    def test_int64_bounds_accepted(self, repo) -> None:
        payload = [
            {"content": "max", "timestamp": 2 ** 63 - 1},
            {"content": "min", "timestamp": -(2 ** 63)},
        ]
        assert import_knowledge(repo, payload) == 2
        assert repo.get(2 ** 63 - 1).content == "max"
