"""Document processors: text extraction and overlapping chunking."""

import io
import logging
import threading
from pathlib import PurePath
from typing import Protocol

from agentkit.errors import UnsupportedDocumentError
from agentkit.knowledge.schema import Chunk, ChunkMetadata, Document, DocumentType

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
PARAGRAPH_SEPARATOR = "\n\n"

_EXTENSION_TYPES = {
    ".txt": DocumentType.TEXT,
    ".md": DocumentType.MARKDOWN,
    ".markdown": DocumentType.MARKDOWN,
    ".pdf": DocumentType.PDF,
    ".doc": DocumentType.DOCX,
    ".docx": DocumentType.DOCX,
    ".xls": DocumentType.XLSX,
    ".xlsx": DocumentType.XLSX,
    ".html": DocumentType.HTML,
    ".htm": DocumentType.HTML,
}


def document_type_from_filename(filename: str) -> DocumentType:
    """Infer the document type from a file extension; unknown means text."""
    return _EXTENSION_TYPES.get(PurePath(filename).suffix.lower(), DocumentType.TEXT)


def get_last_words(text: str, n: int) -> str:
    """Return roughly the last ``n`` characters of ``text`` without splitting a word.

    The cut point moves forward to just after the next space or newline, so
    the result may be shorter than ``n``. Text no longer than ``n`` is
    returned unchanged.
    """
    if len(text) <= n:
        return text

    cut = len(text) - n
    for i in range(cut, len(text)):
        if text[i] in (" ", "\n"):
            cut = i + 1
            break
    return text[cut:]


class DocumentProcessor(Protocol):
    def process(self, document: Document) -> list[Chunk]:
        ...

    def supports_type(self, doc_type: DocumentType) -> bool:
        ...


class BasicTextProcessor:
    """Paragraph-greedy chunker for plain text and markdown.

    Paragraphs (blank-line separated) are accumulated until the next one
    would push the chunk past ``chunk_size``. The closed chunk's tail of
    about ``chunk_overlap`` characters then seeds the next chunk. A single
    paragraph longer than ``chunk_size`` becomes an oversized chunk rather
    than being split.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, chunk_overlap: int = DEFAULT_CHUNK_OVERLAP):
        self.chunk_size = chunk_size if chunk_size > 0 else DEFAULT_CHUNK_SIZE
        self.chunk_overlap = chunk_overlap if chunk_overlap > 0 else DEFAULT_CHUNK_OVERLAP

    def split_text(self, text: str) -> list[str]:
        """Split text into overlapping chunk strings."""
        if not text:
            return []

        pieces: list[str] = []
        current = ""
        for paragraph in text.split(PARAGRAPH_SEPARATOR):
            if current and len(current) + len(paragraph) > self.chunk_size:
                pieces.append(current)
                current = get_last_words(current, self.chunk_overlap)

            if current:
                current += PARAGRAPH_SEPARATOR
            current += paragraph

        if current:
            pieces.append(current)
        return pieces

    def make_chunks(
        self,
        document: Document,
        text: str,
        start_index: int = 0,
        page_number: int | None = None,
    ) -> list[Chunk]:
        return [
            Chunk(
                document_id=document.id,
                content=piece,
                metadata=ChunkMetadata(
                    chunk_index=start_index + offset,
                    page_number=page_number,
                    source=document.name,
                ),
            )
            for offset, piece in enumerate(self.split_text(text))
        ]

    def process(self, document: Document) -> list[Chunk]:
        return self.make_chunks(document, document.content)

    def supports_type(self, doc_type: DocumentType) -> bool:
        return doc_type in (DocumentType.TEXT, DocumentType.MARKDOWN)


def _require_data(document: Document) -> bytes:
    if document.data is None:
        msg = f"Document {document.name} has no binary data"
        raise ValueError(msg)
    return document.data


class PdfProcessor:
    """Extracts PDF text page by page; chunks carry their 1-based page number."""

    def __init__(self, chunker: BasicTextProcessor | None = None):
        self.chunker = chunker or BasicTextProcessor()

    def process(self, document: Document) -> list[Chunk]:
        try:
            import pypdf
        except ImportError as e:
            msg = "pypdf is required for PDF documents. Install with: pip install 'agentkit[documents]'"
            raise ImportError(msg) from e

        reader = pypdf.PdfReader(io.BytesIO(_require_data(document)))
        chunks: list[Chunk] = []
        for page_number, page in enumerate(reader.pages, start=1):
            text = (page.extract_text() or "").strip()
            if not text:
                continue
            chunks.extend(self.chunker.make_chunks(document, text, len(chunks), page_number))
        return chunks

    def supports_type(self, doc_type: DocumentType) -> bool:
        return doc_type == DocumentType.PDF


class DocxProcessor:
    """Extracts the non-empty paragraphs of a Word document."""

    def __init__(self, chunker: BasicTextProcessor | None = None):
        self.chunker = chunker or BasicTextProcessor()

    def process(self, document: Document) -> list[Chunk]:
        try:
            from docx import Document as DocxDocument
        except ImportError as e:
            msg = "python-docx is required for Word documents. Install with: pip install 'agentkit[documents]'"
            raise ImportError(msg) from e

        docx = DocxDocument(io.BytesIO(_require_data(document)))
        paragraphs = [p.text.strip() for p in docx.paragraphs if p.text.strip()]
        return self.chunker.make_chunks(document, PARAGRAPH_SEPARATOR.join(paragraphs))

    def supports_type(self, doc_type: DocumentType) -> bool:
        return doc_type == DocumentType.DOCX


class HtmlProcessor:
    """Extracts visible text from HTML, one paragraph per text line."""

    def __init__(self, chunker: BasicTextProcessor | None = None):
        self.chunker = chunker or BasicTextProcessor()

    def process(self, document: Document) -> list[Chunk]:
        try:
            from bs4 import BeautifulSoup
        except ImportError as e:
            msg = "beautifulsoup4 is required for HTML documents. Install with: pip install 'agentkit[documents]'"
            raise ImportError(msg) from e

        html = document.content
        if not html and document.data is not None:
            html = document.data.decode("utf-8", errors="replace")

        soup = BeautifulSoup(html, "html.parser")
        for element in soup(["script", "style", "noscript"]):
            element.decompose()

        lines = [line.strip() for line in soup.get_text(separator="\n").splitlines()]
        return self.chunker.make_chunks(document, PARAGRAPH_SEPARATOR.join(line for line in lines if line))

    def supports_type(self, doc_type: DocumentType) -> bool:
        return doc_type == DocumentType.HTML


class ProcessorRegistry:
    """Dispatches documents to the processor registered for their type."""

    def __init__(self) -> None:
        self._processors: dict[DocumentType, DocumentProcessor] = {}
        self._lock = threading.Lock()

    def register(self, doc_type: DocumentType, processor: DocumentProcessor) -> None:
        with self._lock:
            self._processors[doc_type] = processor

    def get(self, doc_type: DocumentType) -> DocumentProcessor:
        """Look up the processor of a document type.

        Raises:
            UnsupportedDocumentError: If no processor handles the type
        """
        with self._lock:
            processor = self._processors.get(doc_type)
        if processor is None:
            msg = f"No processor found for document type: {doc_type.value}"
            raise UnsupportedDocumentError(msg)
        return processor

    def supported_types(self) -> list[DocumentType]:
        with self._lock:
            return list(self._processors)

    def process(self, document: Document) -> list[Chunk]:
        chunks = self.get(document.type).process(document)
        logger.debug("Split %s into %d chunks", document.name, len(chunks))
        return chunks


def default_processor_registry(
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> ProcessorRegistry:
    """Registry with the text chunker and the PDF, Word and HTML extractors."""
    chunker = BasicTextProcessor(chunk_size, chunk_overlap)
    registry = ProcessorRegistry()
    registry.register(DocumentType.TEXT, chunker)
    registry.register(DocumentType.MARKDOWN, chunker)
    registry.register(DocumentType.PDF, PdfProcessor(chunker))
    registry.register(DocumentType.DOCX, DocxProcessor(chunker))
    registry.register(DocumentType.HTML, HtmlProcessor(chunker))
    return registry
