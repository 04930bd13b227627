class AnalysisError(Exception):
    """Base class for document analysis failures."""


class ExtractionError(AnalysisError):
    pass


class FileFetchError(ExtractionError):
    pass


class SourceNotFoundError(ExtractionError):
    pass


class UnsupportedFileTypeError(ExtractionError):
    pass


class ExtractionTimeoutError(ExtractionError):
    pass


class JobNotFoundError(AnalysisError):
    pass


class JobStateError(AnalysisError):
    """Raised when a job is not in a state that allows the requested change."""
