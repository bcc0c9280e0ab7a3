"""Task destinations: the structured side of a sync."""

from .base import TaskDestination
from .json_store import JsonTaskStore

__all__ = ["JsonTaskStore", "TaskDestination"]
