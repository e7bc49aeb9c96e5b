"""Bundled pre- and post-process tasks."""
from framebatch.tasks.base import BaseTask
from framebatch.tasks.context import LogTask, SetPropertyTask
from framebatch.tasks.files import DeleteFileTask, MakeDirectoryTask, MoveFileTask

__all__ = [
    "BaseTask",
    "LogTask",
    "SetPropertyTask",
    "DeleteFileTask",
    "MakeDirectoryTask",
    "MoveFileTask",
]
