"""Source adapters that feed flat capture records into the orchestrator."""

from .csv_captures import CaptureCSVAdapter, CaptureCSVRow, CSVAdapterError, CSVDecodeError, CSVHeaderError

__all__ = ["CaptureCSVAdapter", "CaptureCSVRow", "CSVAdapterError", "CSVDecodeError", "CSVHeaderError"]
