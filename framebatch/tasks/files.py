"""
File Tasks
==========

Housekeeping around a run: create the output directory before the read
loop, move or delete input files afterwards. Paths are resolved through
the job context, so "${JobDirectory}/archive" and similar work.
"""

import logging
import shutil
from pathlib import Path

from framebatch.core.enums import ComponentKind
from framebatch.core.errors import TaskError
from framebatch.core.registry import register_component
from framebatch.tasks.base import BaseTask

logger = logging.getLogger(__name__)


def _required_path(task: BaseTask, key: str) -> Path:
    value = task.resolve(key)
    if not value:
        raise TaskError(f"{task.name} requires the '{key}' option", context={"task": task.name})
    return Path(value)


@register_component(ComponentKind.TASK, "make_directory")
class MakeDirectoryTask(BaseTask):
    """Creates a directory and any missing parents (``path``)."""

    def perform(self) -> None:
        path = _required_path(self, "path")
        path.mkdir(parents=True, exist_ok=True)
        logger.info(f"[MakeDirectoryTask] Ensured {path}")


@register_component(ComponentKind.TASK, "move_file")
class MoveFileTask(BaseTask):
    """
    Moves a file.

    Options:
        source: File to move
        target: Destination file, or an existing directory to move into
        overwrite: Replace an existing destination (default False)
    """

    def perform(self) -> None:
        source = _required_path(self, "source")
        target = _required_path(self, "target")

        if not source.exists():
            raise TaskError(f"Cannot move {source}: file does not exist", context={"task": self.name})

        if target.is_dir():
            target = target / source.name
        if target.exists():
            if not self.config.get("overwrite", False):
                raise TaskError(f"Cannot move {source}: {target} already exists", context={"task": self.name})
            target.unlink()

        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(target))
        logger.info(f"[MoveFileTask] Moved {source} to {target}")


@register_component(ComponentKind.TASK, "delete_file")
class DeleteFileTask(BaseTask):
    """
    Deletes a file.

    Options:
        path: File to delete
        must_exist: Fail when the file is missing (default False)
    """

    def perform(self) -> None:
        path = _required_path(self, "path")
        if not path.exists():
            if self.config.get("must_exist", False):
                raise TaskError(f"Cannot delete {path}: file does not exist", context={"task": self.name})
            logger.debug(f"[DeleteFileTask] {path} does not exist; nothing to delete")
            return
        if path.is_dir():
            raise TaskError(f"Refusing to delete directory {path}", context={"task": self.name})
        path.unlink()
        logger.info(f"[DeleteFileTask] Deleted {path}")
