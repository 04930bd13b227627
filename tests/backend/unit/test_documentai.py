from types import SimpleNamespace

import pytest

from studyhub.core.domain.errors import ExtractionError
from studyhub.infrastructure.extraction.documentai import DocumentAIClient


def _anchor(start, end):
    return SimpleNamespace(text_segments=[SimpleNamespace(start_index=start, end_index=end)])


def _cell(start, end):
    return SimpleNamespace(layout=SimpleNamespace(text_anchor=_anchor(start, end)))


class FakeProcessorClient:
    def __init__(self, document):
        self.document = document
        self.requests = []

    def process_document(self, request):
        self.requests.append(request)
        return SimpleNamespace(document=self.document)


def _client(document, **overrides):
    settings = dict(project_id="proj", processor_id="proc", credentials_path="/creds.json")
    settings.update(overrides)
    return DocumentAIClient(client=FakeProcessorClient(document), **settings)


def test_not_configured_without_credentials():
    client = DocumentAIClient(project_id="proj", processor_id="proc", credentials_path=None)

    assert client.is_configured() is False
    with pytest.raises(ExtractionError, match="not configured"):
        client.extract_text(b"data", "application/pdf")


def test_structured_extraction_reads_tables_and_fields():
    text = "NameAda1) Define x"
    table = SimpleNamespace(
        header_rows=[SimpleNamespace(cells=[_cell(0, 4)])],
        body_rows=[SimpleNamespace(cells=[_cell(4, 7)])],
    )
    form_field = SimpleNamespace(
        field_name=SimpleNamespace(text_anchor=_anchor(0, 4)),
        field_value=SimpleNamespace(text_anchor=_anchor(4, 7)),
    )
    page = SimpleNamespace(tables=[table], form_fields=[form_field])
    client = _client(SimpleNamespace(text=text, pages=[page]))

    doc = client.extract_structured(b"pdf", "application/pdf")

    assert doc.text == text
    assert doc.page_count == 1
    assert doc.tables[0].rows == 1 and doc.tables[0].columns == 1
    assert doc.tables[0].content == [["Name"], ["Ada"]]
    assert (doc.form_fields[0].name, doc.form_fields[0].value) == ("Name", "Ada")

    request = client._client.requests[0]
    assert request["name"] == "projects/proj/locations/us/processors/proc"
    assert request["raw_document"]["mime_type"] == "application/pdf"


def test_plain_text_requires_content():
    client = _client(SimpleNamespace(text="", pages=[]))

    with pytest.raises(ExtractionError, match="no text"):
        client.extract_text(b"pdf", "application/pdf")
