"""Knowledge records and YAML corpus loading."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from screenpilot.errors import RetrievalFailure

SLUG_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class KnowledgeRecord:
    """Named, tagged instruction template."""

    id: str
    name: str
    description: str
    instructions: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()

    def embedding_text(self) -> str:
        return f"{self.name} {self.description} {' '.join(self.instructions)}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "instructions": list(self.instructions),
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> KnowledgeRecord:
        name = str(payload.get("name") or "").strip()
        if not name:
            raise ValueError("knowledge record requires a name")
        record_id = str(payload.get("id") or slugify(name))
        return cls(
            id=record_id,
            name=name,
            description=str(payload.get("description") or ""),
            instructions=_as_lines(payload.get("instructions")),
            tags=_as_tags(payload.get("tags")),
        )


def slugify(text: str) -> str:
    return SLUG_RE.sub("-", text.lower()).strip("-")


def _as_lines(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(line.strip() for line in value.splitlines() if line.strip())
    return tuple(str(item) for item in value)


def _as_tags(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(tag.strip() for tag in value.split(",") if tag.strip())
    return tuple(str(item) for item in value)


def load_corpus(path: Path) -> list[KnowledgeRecord]:
    """Load records from a YAML list, or a mapping with a ``records`` list."""

    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise RetrievalFailure(f"Cannot read knowledge corpus {path}: {exc}") from exc

    if payload is None:
        return []
    if isinstance(payload, dict):
        payload = payload.get("records", [])
    if not isinstance(payload, list):
        raise RetrievalFailure(f"Knowledge corpus {path} must contain a list of records")

    records: list[KnowledgeRecord] = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            raise RetrievalFailure(f"Knowledge corpus {path}: record #{index} is not a mapping")
        try:
            records.append(KnowledgeRecord.from_dict(item))
        except ValueError as exc:
            raise RetrievalFailure(f"Knowledge corpus {path}: record #{index}: {exc}") from exc
    return records
