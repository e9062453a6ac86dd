"""
Field memo backend.

Turns captured voice memos and inspection photos/voice notes into stored,
transcribed and structured records (tasks, findings, reports).
"""
