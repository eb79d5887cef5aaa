"""Knowledge base, document and chunk models."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class DocumentType(str, Enum):
    TEXT = "text"
    MARKDOWN = "markdown"
    PDF = "pdf"
    DOCX = "docx"
    XLSX = "xlsx"
    HTML = "html"


class KnowledgeBase(BaseModel):
    """A named collection of documents sharing one embedding model.

    Each knowledge base owns exactly one vector collection whose name is the
    knowledge base id.
    """

    id: str = Field(default_factory=_new_id)
    name: str
    description: str = ""
    embedding_model: str
    document_count: int = 0
    chunk_count: int = 0
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    metadata: dict[str, Any] = Field(default_factory=dict)


class Document(BaseModel):
    """A document ingested into a knowledge base.

    ``content`` holds the text of text-like documents and ``data`` the raw
    bytes of binary formats. Neither is included when the document is
    serialized.
    """

    id: str = Field(default_factory=_new_id)
    knowledge_base_id: str
    name: str
    type: DocumentType = DocumentType.TEXT
    size: int = 0
    content: str = Field(default="", exclude=True)
    data: bytes | None = Field(default=None, exclude=True, repr=False)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ChunkMetadata(BaseModel):
    chunk_index: int
    page_number: int | None = None
    source: str = ""


class Chunk(BaseModel):
    """A slice of a document's text; the unit that is embedded and searched."""

    id: str = Field(default_factory=_new_id)
    document_id: str
    content: str
    vector: list[float] | None = Field(default=None, exclude=True, repr=False)
    metadata: ChunkMetadata
