"""
Transfer API - knowledge export and bulk import.

Export writes the whole knowledge collection as pretty-printed JSON,
ordered by timestamp. Import is strict: the payload must be a JSON array
whose every element is a {content: str, timestamp: int} object. A single
bad element rejects the whole batch with one ValidationError before
anything is written; a valid batch is stored with one atomic bulk add.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Union

from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..repositories.knowledge_repository import KnowledgeRepository
from ..repositories.models import KnowledgeItem

Payload = Union[str, bytes, List[Any]]


# ----------------------------------------------------------------------
# Parsing
# ----------------------------------------------------------------------


def parse_knowledge_payload(payload: Payload) -> List[KnowledgeItem]:
    """
    Validate an import payload.

    `payload` may be raw JSON text/bytes or an already decoded list.

    Raises
    ------
    ValidationError
        Malformed JSON, a non-array payload, or any invalid element.
    """
    data: Any = payload
    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except ValueError as e:
            raise ValidationError(f"Invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise ValidationError("Invalid JSON format. Expected an array of knowledge items.")

    items: List[KnowledgeItem] = []
    errors: List[str] = []
    for index, element in enumerate(data):
        if not isinstance(element, dict):
            errors.append(f"item {index}: expected an object")
            continue
        try:
            items.append(KnowledgeItem.model_validate(element))
        except PydanticValidationError as e:
            for err in e.errors():
                where = ".".join(str(p) for p in err["loc"]) or "item"
                errors.append(f"item {index}: {where}: {err['msg']}")

    if errors:
        raise ValidationError(
            f"{len(errors)} problem(s) in import payload; nothing was imported",
            errors,
        )
    return items


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------


def import_knowledge(repository: KnowledgeRepository, payload: Payload) -> int:
    """
    Validate and store a batch. Returns the number of items imported.

    Raises ValidationError for a bad payload and UniqueKeyViolation when a
    timestamp already exists; in both cases nothing is written.
    """
    items = parse_knowledge_payload(payload)
    if not items:
        return 0
    return repository.bulk_add(items)


def export_knowledge(repository: KnowledgeRepository) -> str:
    items = sorted(repository.get_all(), key=lambda i: i.timestamp)
    return json.dumps(
        [i.model_dump(mode="json") for i in items],
        indent=2,
        ensure_ascii=False,
    )


def export_knowledge_file(repository: KnowledgeRepository, path: Path) -> Path:
    """Write the export to `path`, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(export_knowledge(repository), encoding="utf-8")
    return path


def import_knowledge_file(repository: KnowledgeRepository, path: Path) -> int:
    text = Path(path).read_text(encoding="utf-8")
    return import_knowledge(repository, text)


__all__ = [
    "parse_knowledge_payload",
    "import_knowledge",
    "export_knowledge",
    "export_knowledge_file",
    "import_knowledge_file",
]
