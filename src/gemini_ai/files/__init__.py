"""
Files API: resumable uploads with progress reporting.
"""

from gemini_ai.files.manager import FileInfo, FileManager, FileState, parse_file_id
from gemini_ai.files.progress import DEFAULT_CHUNK_SIZE, ProgressTrackingBody, UploadProgress

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "FileInfo",
    "FileManager",
    "FileState",
    "ProgressTrackingBody",
    "UploadProgress",
    "parse_file_id",
]
