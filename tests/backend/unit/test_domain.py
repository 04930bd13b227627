import pytest

from studyhub.core.domain.analysis import (
    Difficulty,
    ExtractionResult,
    IndexResult,
    JobStatus,
    PipelineResult,
    SegmentationResult,
    TaggingResult,
    ExtractedQuestion,
    Concept,
)


@pytest.mark.parametrize("raw", ["pending", "PENDING", " Pending "])
def test_status_parse_is_case_insensitive(raw):
    assert JobStatus.parse(raw) is JobStatus.PENDING


def test_status_parse_rejects_unknown_values():
    with pytest.raises(ValueError):
        JobStatus.parse("queued")


def test_only_completed_and_failed_are_terminal():
    assert [status for status in JobStatus if status.is_terminal] == [JobStatus.COMPLETED, JobStatus.FAILED]


def test_difficulty_defaults_to_medium():
    assert Difficulty.parse(None) is Difficulty.MEDIUM
    assert Difficulty.parse("impossible") is Difficulty.MEDIUM
    assert Difficulty.parse("expert") is Difficulty.EXPERT


def test_pipeline_result_payload_has_required_keys():
    result = PipelineResult.compose(
        ExtractionResult(text="x" * 800, method="pdf_text", page_count=2),
        SegmentationResult(questions=[ExtractedQuestion(question_text="Q")]),
        TaggingResult(concepts=[Concept(id=1, name="Data Structures")]),
        IndexResult(indexed=True, content_length=800, excerpt_length=800),
    )

    payload = result.to_payload()

    assert payload["questionsExtracted"] == 1
    assert payload["conceptsIdentified"] == 1
    assert payload["ragIndexed"] is True
    assert payload["concepts"] == ["Data Structures"]
    assert len(payload["textPreview"]) == 500
    assert PipelineResult.from_payload(payload) == result


def test_from_payload_of_empty_results_is_none():
    assert PipelineResult.from_payload({}) is None
    assert PipelineResult.from_payload(None) is None
