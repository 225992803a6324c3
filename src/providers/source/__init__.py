"""Document source implementations.

FileSystemSourceProvider reads local text, Markdown, HTML and PDF files.
"""

from src.providers.source.filesystem_provider import FileSystemSourceProvider

__all__ = ["FileSystemSourceProvider"]
