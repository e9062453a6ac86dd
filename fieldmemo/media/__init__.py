"""
Media processing pipeline.

- Ingest: validate a capture, upload it, create the tracking row
- Transcription: audio -> transcript, recorded on the row
- Extraction: transcript -> tasks, recorded on the row
- Report: inspection findings -> one summary on the inspection

Nothing in this package talks to Flask. The store and the AI services are
passed in by the caller.
"""
