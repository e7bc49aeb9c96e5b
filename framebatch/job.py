"""
Job Runner
==========

Builds an engine from a job configuration, runs it (optionally several
times) and turns the outcome into an exit status.
"""

import logging
import time
from typing import Optional

from framebatch.config import JobConfig, load_config
from framebatch.core.engine import TransformEngine
from framebatch.core.errors import JobError
from framebatch.core.factory import EngineFactory
from framebatch.core.registry import ComponentRegistry

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_JOB_ERROR = 1
EXIT_CONFIG_ERROR = 2


class Job:
    """
    One configured job.

    Example:
        job = Job.from_file("config/job.yaml")
        status = job.run()
    """

    def __init__(
        self,
        config: JobConfig,
        work_directory: Optional[str] = None,
        registry: Optional[ComponentRegistry] = None,
    ):
        """
        Build the engine for a job.

        Raises:
            ConfigurationError: If any component cannot be created.
        """
        self.config = config
        self.engine: TransformEngine = EngineFactory(registry).create(config, work_directory=work_directory)
        self.runs_completed = 0
        self.runs_failed = 0

    @classmethod
    def from_file(cls, config_path: Optional[str] = None, work_directory: Optional[str] = None) -> "Job":
        return cls(load_config(config_path), work_directory=work_directory)

    def run(self, raise_on_error: bool = False) -> int:
        """
        Run the engine ``config.repeat`` times, closing it after every run.

        Stops at the first run that ends in error.

        Args:
            raise_on_error: Raise JobError instead of returning a failure status.

        Returns:
            EXIT_SUCCESS or EXIT_JOB_ERROR
        """
        repeat = self.config.repeat
        for iteration in range(repeat):
            self.engine.run()
            self.engine.close()

            context = self.engine.context
            if context.is_in_error():
                self.runs_failed += 1
                logger.error(f"[Job] {self.engine.name} failed: {context.error_message}")
                if raise_on_error:
                    raise JobError(
                        f"Job {self.engine.name} failed",
                        context={"message": context.error_message, "run": iteration + 1},
                    )
                return EXIT_JOB_ERROR

            self.runs_completed += 1
            if iteration + 1 < repeat and self.config.interval_seconds > 0:
                logger.debug(f"[Job] Sleeping {self.config.interval_seconds}s before the next run")
                time.sleep(self.config.interval_seconds)

        logger.info(f"[Job] {self.engine.name} finished {self.runs_completed} run(s)")
        return EXIT_SUCCESS
