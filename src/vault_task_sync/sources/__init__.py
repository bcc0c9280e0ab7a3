"""Task sources: the authoritative side of a sync."""

from .base import TaskSource
from .markdown import MarkdownTaskSource, parse_task_line

__all__ = ["MarkdownTaskSource", "TaskSource", "parse_task_line"]
