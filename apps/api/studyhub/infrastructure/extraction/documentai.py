import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

try:
    from google.cloud import documentai
except ImportError:  # pragma: no cover - optional dependency
    documentai = None  # type: ignore[assignment]

from studyhub.core.domain.analysis import ExtractedTable, FormField
from studyhub.core.domain.errors import ExtractionError

logger = logging.getLogger(__name__)


@dataclass
class StructuredDocument:
    text: str
    page_count: int
    tables: List[ExtractedTable] = field(default_factory=list)
    form_fields: List[FormField] = field(default_factory=list)


def _anchor_text(anchor: Any, full_text: str) -> str:
    segments = getattr(anchor, "text_segments", None) or []
    parts = []
    for segment in segments:
        start = int(getattr(segment, "start_index", 0) or 0)
        end = int(getattr(segment, "end_index", 0) or len(full_text))
        parts.append(full_text[start:end])
    return "".join(parts).strip()


def _table_rows(rows: Any, full_text: str) -> List[List[str]]:
    content: List[List[str]] = []
    for row in rows or []:
        content.append([_anchor_text(cell.layout.text_anchor, full_text) for cell in row.cells or []])
    return content


def _parse_tables(page: Any, full_text: str) -> List[ExtractedTable]:
    tables: List[ExtractedTable] = []
    for table in getattr(page, "tables", None) or []:
        header_rows = list(table.header_rows or [])
        body_rows = list(table.body_rows or [])
        columns = len(header_rows[0].cells) if header_rows else 0
        tables.append(
            ExtractedTable(
                rows=len(body_rows),
                columns=columns,
                content=_table_rows(header_rows, full_text) + _table_rows(body_rows, full_text),
            )
        )
    return tables


def _parse_form_fields(page: Any, full_text: str) -> List[FormField]:
    fields: List[FormField] = []
    for form_field in getattr(page, "form_fields", None) or []:
        fields.append(
            FormField(
                name=_anchor_text(form_field.field_name.text_anchor, full_text),
                value=_anchor_text(form_field.field_value.text_anchor, full_text),
            )
        )
    return fields


class DocumentAIClient:
    """
    Google Cloud Document AI processor wrapper.

    Only considered configured when a project, a processor and a credentials
    file are all present; otherwise the extractor silently skips it.
    """

    def __init__(
        self,
        project_id: Optional[str],
        processor_id: Optional[str],
        location: str = "us",
        credentials_path: Optional[str] = None,
        client: Any = None,
    ):
        self.project_id = project_id
        self.processor_id = processor_id
        self.location = location
        self.credentials_path = credentials_path
        self._client = client

    def is_configured(self) -> bool:
        if not (self.project_id and self.processor_id and self.credentials_path):
            return False
        return self._client is not None or documentai is not None

    @property
    def processor_name(self) -> str:
        return f"projects/{self.project_id}/locations/{self.location}/processors/{self.processor_id}"

    def _get_client(self):
        if self._client is None:
            if documentai is None:
                raise ExtractionError("google-cloud-documentai is not installed")
            options = {"api_endpoint": f"{self.location}-documentai.googleapis.com"}
            self._client = documentai.DocumentProcessorServiceClient(client_options=options)
        return self._client

    def _process(self, data: bytes, mime_type: str):
        if not self.is_configured():
            raise ExtractionError("Document AI not configured")
        client = self._get_client()
        result = client.process_document(
            request={
                "name": self.processor_name,
                "raw_document": {"content": data, "mime_type": mime_type},
                "skip_human_review": True,
            }
        )
        document = getattr(result, "document", None)
        if document is None:
            raise ExtractionError("Document AI returned no document data")
        return document

    def extract_structured(self, data: bytes, mime_type: str) -> StructuredDocument:
        document = self._process(data, mime_type)
        full_text = document.text or ""
        pages = list(document.pages or [])
        tables: List[ExtractedTable] = []
        form_fields: List[FormField] = []
        for page in pages:
            tables.extend(_parse_tables(page, full_text))
            form_fields.extend(_parse_form_fields(page, full_text))
        logger.info(
            "Document AI structured extraction: %s chars, %s tables, %s form fields",
            len(full_text),
            len(tables),
            len(form_fields),
        )
        return StructuredDocument(text=full_text, page_count=len(pages), tables=tables, form_fields=form_fields)

    def extract_text(self, data: bytes, mime_type: str) -> str:
        document = self._process(data, mime_type)
        if not document.text:
            raise ExtractionError("Document AI returned no text content")
        return document.text
