"""
Error taxonomy for the media pipeline.

Per-memo stages (transcription, extraction) record the failure on the row
before raising. Everything else raises without touching any row.
"""


class PipelineError(Exception):
    """Base class for every error the pipeline reports to a caller."""


class ValidationError(PipelineError):
    """Bad input (empty capture, unknown kind, bad date). No state mutation."""


class UploadError(PipelineError):
    """Blob store rejected the upload. No row was created."""


class TranscriptionError(PipelineError):
    """Row exists and is marked transcript_status=error."""


class ExtractionError(PipelineError):
    """Row has a transcript and is marked extract_status=error. No tasks inserted."""


class EmptyInputError(PipelineError):
    """Report precondition failed (no findings). No mutation."""


class ReportGenerationError(PipelineError):
    """Summarization failed. The inspection is left as it was."""


class StoreError(PipelineError):
    """Structured store failure outside of a stage's own ledger write."""


class NotFoundError(PipelineError):
    """Row does not exist or is not owned by the caller."""
