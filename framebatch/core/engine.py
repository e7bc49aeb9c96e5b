"""
Transform Engine
================

Drives one job run: opens the context and stages, runs pre-process tasks,
pushes every record through filter -> validate -> transform -> map ->
write, drains, runs post-process tasks and reports.

Run states:
    CREATED -> OPENING -> RUNNING -> DRAINING -> CLOSED
    OPENING | RUNNING | DRAINING -> ERROR

Stage exceptions never escape ``run()``. Each one is converted into a
StageFailure on the context that owns it and escalated by the scope of the
phase it was raised in:
    - record scope (filter, validator, transformer, mapper): the transaction
      is put in error and the engine moves to the next record
    - job scope (reader, tasks, component open): the job is put in error
    - none (writers): logged as a warning
"""

import logging
import os
import re
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

from framebatch.core.base import (
    Component,
    ContextListener,
    FrameFilter,
    FrameMapper,
    FrameReader,
    FrameTransform,
    FrameValidator,
    FrameWriter,
    TransformTask,
)
from framebatch.core.context import TransactionContext, TransformContext
from framebatch.core.enums import EngineState, FailureScope, RunPhase
from framebatch.core.errors import StageFailure
from framebatch.core.frame import Frame
from framebatch.core.mapper import DefaultFrameMapper
from framebatch.core.symbols import SymbolTable, Symbols, populate_run_date

logger = logging.getLogger(__name__)

WORK_DIRECTORY_ENV = "FRAMEBATCH_WORK"
DEFAULT_WORK_DIRECTORY = "wrk"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_name(name: str) -> str:
    """Make a job name safe to use as a directory name."""
    return _UNSAFE_CHARS.sub("_", name)


class TransformEngine:
    """
    Batch pipeline engine.

    Example:
        engine = TransformEngine(name="daily-orders")
        engine.set_reader(NdjsonReader({"path": "orders.ndjson"}))
        engine.add_filter(AcceptFilter({"field": "status", "equals": "open"}))
        engine.add_writer(CsvWriter({"path": "${JobDirectory}/open.csv"}))
        with engine:
            engine.run()
        engine.context.is_in_error()
    """

    def __init__(
        self,
        name: Optional[str] = None,
        work_directory: Optional[str] = None,
        job_directory: Optional[str] = None,
    ):
        """
        Initialize engine.

        Args:
            name: Job name; a name is generated from the instance id if None
            work_directory: Base work directory (else $FRAMEBATCH_WORK, else ./wrk)
            job_directory: Explicit job directory (else work directory / job name)
        """
        self.instance_id = uuid.uuid4().hex[:8]
        self._name = name
        self._explicit_work_directory = Path(work_directory) if work_directory else None
        self._explicit_job_directory = Path(job_directory) if job_directory else None
        self._work_directory: Optional[Path] = None
        self._job_directory: Optional[Path] = None

        self.symbols = SymbolTable()
        self._context: Optional[TransformContext] = None

        self.reader: Optional[FrameReader] = None
        self.mapper: Optional[FrameMapper] = None
        self.filters: list[FrameFilter] = []
        self.validators: list[FrameValidator] = []
        self.transformers: list[FrameTransform] = []
        self.writers: list[FrameWriter] = []
        self.listeners: list[ContextListener] = []
        self.preprocess_tasks: list[TransformTask] = []
        self.postprocess_tasks: list[TransformTask] = []

        self.state = EngineState.CREATED
        self.run_count = 0
        self.job_id: Optional[str] = None
        self.frame_count = 0
        self._active_mapper: Optional[FrameMapper] = None

        self.stats = {
            "runs": 0,
            "runs_failed": 0,
            "frames_read": 0,
            "frames_written": 0,
            "transaction_errors": 0,
        }

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def name(self) -> Optional[str]:
        return self._name

    @name.setter
    def name(self, name: Optional[str]) -> None:
        self._name = name

    @property
    def context(self) -> Optional[TransformContext]:
        return self._context

    @context.setter
    def context(self, context: Optional[TransformContext]) -> None:
        if self.state.is_active:
            raise RuntimeError("Cannot replace the context while a run is in progress")
        self._context = context

    @property
    def job_directory(self) -> Optional[Path]:
        return self._job_directory or self._explicit_job_directory

    @property
    def work_directory(self) -> Optional[Path]:
        return self._work_directory or self._explicit_work_directory

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_reader(self, reader: Optional[FrameReader]) -> None:
        self.reader = reader

    def set_mapper(self, mapper: Optional[FrameMapper]) -> None:
        self.mapper = mapper

    def add_filter(self, stage: Optional[FrameFilter]) -> int:
        return _append(self.filters, stage)

    def add_validator(self, stage: Optional[FrameValidator]) -> int:
        return _append(self.validators, stage)

    def add_transformer(self, stage: Optional[FrameTransform]) -> int:
        return _append(self.transformers, stage)

    def add_writer(self, stage: Optional[FrameWriter]) -> int:
        return _append(self.writers, stage)

    def add_listener(self, listener: Optional[ContextListener]) -> int:
        return _append(self.listeners, listener)

    def add_preprocess_task(self, task: Optional[TransformTask]) -> int:
        return _append(self.preprocess_tasks, task)

    def add_postprocess_task(self, task: Optional[TransformTask]) -> int:
        return _append(self.postprocess_tasks, task)

    # =========================================================================
    # Main Execution
    # =========================================================================

    def run(self) -> None:
        """
        Execute one run of the job.

        Never raises; inspect ``engine.context`` afterwards for the outcome.
        A call made while a run is already in progress is ignored.
        """
        if self.state.is_active:
            logger.error(f"[TransformEngine] {self.name} is already running; run() ignored")
            return

        self.run_count += 1
        self.stats["runs"] += 1
        self.state = EngineState.OPENING

        try:
            self._open_context()

            if self._context.is_not_in_error():
                self._context.start()
                self._run_tasks(self.preprocess_tasks, RunPhase.PRE_PROCESS)

            if self._context.is_not_in_error():
                self._open_components()

            if self._context.is_not_in_error():
                self.state = EngineState.RUNNING
                self._context.set_phase(RunPhase.PROCESS)
                self._process()

            self.state = EngineState.DRAINING
            self._drain()

            if self._context.is_not_in_error():
                self._run_tasks(self.postprocess_tasks, RunPhase.POST_PROCESS)

        except Exception as e:
            logger.exception(f"[TransformEngine] Unexpected failure in {self.name}: {e}")
            if self._context is None:
                self._context = TransformContext()
            self._context.set_error(f"Unexpected engine failure: {e}")

        finally:
            self._finish()

    def close(self) -> None:
        """Close the job context (data stores, persistence). Idempotent."""
        if self._context is not None:
            self._context.close()

    def __enter__(self) -> "TransformEngine":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # =========================================================================
    # Opening
    # =========================================================================

    def _open_context(self) -> None:
        self.job_id = uuid.uuid4().hex
        self.frame_count = 0
        self._resolve_directories()

        if not self._name:
            self._name = f"TransformEngine-{self.instance_id}"

        rundate = datetime.now()
        populate_run_date(self.symbols, rundate)
        self.symbols[Symbols.JOB_ID] = self.job_id
        self.symbols[Symbols.JOB_NAME] = self._name
        self.symbols[Symbols.WORK_DIRECTORY] = str(self._work_directory)
        self.symbols[Symbols.JOB_DIRECTORY] = str(self._job_directory)

        if self._context is None:
            logger.debug("[TransformEngine] No context configured; using a default TransformContext")
            self._context = TransformContext()
        else:
            self._context.reset()
            for key, value in self._context.properties.items():
                self.symbols.put(key, value)

        context = self._context
        context.listeners = self.listeners
        context.engine = self
        context.symbols = self.symbols
        context.set_phase(RunPhase.INITIALIZE)

        logger.info(
            f"[TransformEngine] Starting {self._name} (job {self.job_id[:8]}, "
            f"run {self.run_count}) in {self._job_directory}"
        )

        try:
            context.open()
        except Exception as e:
            self._job_failure(context, context.__class__.__name__, RunPhase.INITIALIZE, e)
            return

        context.set_phase(RunPhase.LISTENER_INIT)
        for listener in self.listeners:
            if not listener.enabled:
                continue
            try:
                listener.open(context)
            except Exception as e:
                self._job_failure(context, listener.name, RunPhase.LISTENER_INIT, e)
                return

        if self._enabled(self.writers) and self._active_reader() is None:
            context.set_error("Writers are configured but there is no reader")

    def _resolve_directories(self) -> None:
        if self._explicit_work_directory is not None:
            work = self._explicit_work_directory
        elif os.environ.get(WORK_DIRECTORY_ENV):
            work = Path(os.environ[WORK_DIRECTORY_ENV])
        else:
            work = Path.cwd() / DEFAULT_WORK_DIRECTORY

        if self._explicit_job_directory is not None:
            job = self._explicit_job_directory
        elif self._name:
            job = work / sanitize_name(self._name)
        else:
            job = Path.cwd()
            if self._explicit_work_directory is None:
                work = Path.cwd()

        self._work_directory = work
        self._job_directory = job

    def _open_components(self) -> None:
        context = self._context

        reader = self._active_reader()
        if reader is not None:
            context.set_phase(RunPhase.READER_INIT)
            if not self._open_component(reader, RunPhase.READER_INIT):
                return

        context.set_phase(RunPhase.MAPPER_INIT)
        if self.mapper is not None and self.mapper.enabled:
            self._active_mapper = self.mapper
        else:
            self._active_mapper = DefaultFrameMapper()
        if not self._open_component(self._active_mapper, RunPhase.MAPPER_INIT):
            return

        for phase, stages in (
            (RunPhase.WRITER_INIT, self.writers),
            (RunPhase.FILTER_INIT, self.filters),
            (RunPhase.VALIDATOR_INIT, self.validators),
            (RunPhase.TRANSFORM_INIT, self.transformers),
        ):
            context.set_phase(phase)
            for stage in self._enabled(stages):
                if not self._open_component(stage, phase):
                    return

    def _open_component(self, component: Component, phase: RunPhase) -> bool:
        try:
            component.open(self._context)
        except Exception as e:
            self._job_failure(self._context, component.name, phase, e)
            return False
        if self._context.is_in_error():
            logger.error(f"[TransformEngine] {component.name} put the job in error while opening")
            return False
        logger.debug(f"[TransformEngine] Opened {component.name}")
        return True

    # =========================================================================
    # Tasks
    # =========================================================================

    def _run_tasks(self, tasks: Sequence[TransformTask], phase: RunPhase) -> None:
        """Open and execute enabled tasks in order; close all of them afterwards."""
        context = self._context
        context.set_phase(phase)
        enabled = self._enabled(tasks)
        try:
            for task in enabled:
                try:
                    task.open(context)
                    if context.is_in_error():
                        break
                    logger.debug(f"[TransformEngine] Executing {phase} task {task.name}")
                    task.execute()
                except Exception as e:
                    self._job_failure(context, task.name, phase, e)
                    break
                if context.is_in_error():
                    break
        finally:
            for task in enabled:
                self._close_quietly(task)

    # =========================================================================
    # Record Loop
    # =========================================================================

    def _process(self) -> None:
        context = self._context
        reader = self._active_reader()
        if reader is None:
            logger.info(f"[TransformEngine] {self._name} has no reader; skipping the read loop")
            return

        while context.is_not_in_error() and not reader.eof():
            txn = TransactionContext(context)
            context.transaction = txn
            txn.start()
            txn.state = str(RunPhase.READ)

            try:
                frame = reader.read(txn)
            except Exception as e:
                self._job_failure(context, reader.name, RunPhase.READ, e)
                txn.end()
                break

            if frame is None:
                txn.end()
                continue

            if not isinstance(frame, Frame):
                frame = Frame.from_dict(frame)

            reader.frames_read += 1
            self.frame_count += 1
            self.stats["frames_read"] += 1
            txn.source_frame = frame
            txn.working_frame = frame.copy()
            txn.row = self.frame_count
            context.row = self.frame_count
            self.symbols[Symbols.CURRENT_FRAME] = self.frame_count
            self.symbols[Symbols.LAST_FRAME] = txn.last_frame
            logger.debug(f"[TransformEngine] Read row {self.frame_count}: {frame!r}")
            txn.fire_read(reader)

            self._process_transaction(txn)

            txn.end()
            if txn.is_in_error():
                context.transaction_errors += 1
                self.stats["transaction_errors"] += 1

    def _process_transaction(self, txn: TransactionContext) -> None:
        self._filter(txn)

        if txn.working_frame is not None:
            self._validate(txn)

        if txn.is_not_in_error() and txn.working_frame is not None:
            self._transform(txn)

        if txn.is_not_in_error() and txn.working_frame is not None:
            self._map(txn)

        if txn.is_not_in_error() and txn.target_frame is not None and self.writers:
            self._write(txn)

    def _filter(self, txn: TransactionContext) -> None:
        txn.state = str(RunPhase.FILTER)
        for stage in self._enabled(self.filters):
            try:
                keep_going = stage.process(txn)
            except Exception as e:
                self._record_failure(txn, stage, RunPhase.FILTER, e)
                return
            if txn.working_frame is None:
                logger.debug(f"[TransformEngine] Row {txn.row} dropped by {stage.name}")
                return
            if not keep_going:
                return

    def _validate(self, txn: TransactionContext) -> None:
        txn.state = str(RunPhase.VALIDATE)
        messages = []
        for stage in self._enabled(self.validators):
            try:
                if not stage.process(txn):
                    messages.append(stage.failure_message)
            except Exception as e:
                self._record_failure(txn, stage, RunPhase.VALIDATE, e)
                break
        if messages:
            message = ", ".join(messages)
            logger.debug(f"[TransformEngine] Row {txn.row} failed validation: {message}")
            txn.fire_validation_failed(message)

    def _transform(self, txn: TransactionContext) -> None:
        txn.state = str(RunPhase.TRANSFORM)
        for stage in self._enabled(self.transformers):
            try:
                result = stage.process(txn.working_frame)
            except Exception as e:
                self._record_failure(txn, stage, RunPhase.TRANSFORM, e)
                return
            txn.working_frame = result
            if result is None:
                logger.debug(f"[TransformEngine] Row {txn.row} dropped by {stage.name}")
                return

    def _map(self, txn: TransactionContext) -> None:
        txn.state = str(RunPhase.MAP)
        if txn.target_frame is None:
            txn.target_frame = Frame()
        try:
            self._active_mapper.process(txn)
        except Exception as e:
            self._record_failure(txn, self._active_mapper, RunPhase.MAP, e)

    def _write(self, txn: TransactionContext) -> None:
        txn.state = str(RunPhase.WRITE)
        for writer in self._enabled(self.writers):
            try:
                writer.write(txn.target_frame)
            except Exception as e:
                failure = StageFailure.from_exception(
                    writer.name, str(RunPhase.WRITE), e, FailureScope.NONE, txn.row
                )
                txn.add_failure(failure)
                logger.warning(f"[TransformEngine] Write failed for row {txn.row}: {failure.describe()}")
                continue
            writer.frames_written += 1
            self.stats["frames_written"] += 1
            txn.fire_write(writer)

    # =========================================================================
    # Draining and Reporting
    # =========================================================================

    def _drain(self) -> None:
        """Close reader and writers so post-process tasks can use their files."""
        reader = self._active_reader()
        if reader is not None:
            self._close_quietly(reader)
        for writer in self.writers:
            self._close_quietly(writer)

    def _finish(self) -> None:
        context = self._context
        failed = context.is_in_error()

        if failed:
            self.stats["runs_failed"] += 1
            logger.error(f"[TransformEngine] {context.state} Error - {context.error_message}")
        else:
            context.set_phase(RunPhase.COMPLETE)

        context.end()

        components: list[Component] = []
        if self.reader is not None:
            components.append(self.reader)
        if self._active_mapper is not None:
            components.append(self._active_mapper)
        components.extend(self.writers)
        components.extend(self.filters)
        components.extend(self.validators)
        components.extend(self.transformers)
        components.extend(self.preprocess_tasks)
        components.extend(self.postprocess_tasks)
        components.extend(self.listeners)
        for component in components:
            self._close_quietly(component)

        if not failed:
            logger.info(
                f"[TransformEngine] {self._name} completed: {self.frame_count} rows, "
                f"{context.transaction_errors} record errors in {context.elapsed():.3f}s"
            )

        context.transaction = None
        self._active_mapper = None
        self.frame_count = 0
        self.state = EngineState.ERROR if failed else EngineState.CLOSED

    # =========================================================================
    # Helpers
    # =========================================================================

    def _active_reader(self) -> Optional[FrameReader]:
        if self.reader is not None and self.reader.enabled:
            return self.reader
        return None

    @staticmethod
    def _enabled(stages: Sequence[Component]) -> list:
        return [s for s in stages if s.enabled]

    def _record_failure(
        self,
        txn: TransactionContext,
        stage: Component,
        phase: RunPhase,
        error: Exception,
    ) -> None:
        failure = StageFailure.from_exception(stage.name, str(phase), error, FailureScope.RECORD, txn.row)
        txn.add_failure(failure)
        logger.error(f"[TransformEngine] {phase} Error on row {txn.row} - {failure.describe()}")
        txn.set_error(failure.describe())

    def _job_failure(
        self,
        context: TransformContext,
        stage_name: str,
        phase: RunPhase,
        error: Exception,
    ) -> None:
        failure = StageFailure.from_exception(stage_name, str(phase), error, FailureScope.JOB, context.row)
        context.add_failure(failure)
        context.set_phase(phase)
        context.set_error(failure.describe())

    @staticmethod
    def _close_quietly(component: Component) -> None:
        try:
            component.close()
        except Exception as e:
            logger.warning(f"[TransformEngine] Failed to close {component.name}: {e}")

    def get_stats(self) -> dict[str, Any]:
        return {
            **self.stats,
            "name": self._name,
            "state": str(self.state),
            "run_count": self.run_count,
        }

    def __repr__(self) -> str:
        return f"TransformEngine(name={self._name!r}, state={self.state})"


def _append(stages: list, stage: Any) -> int:
    if stage is None:
        return -1
    stages.append(stage)
    return len(stages) - 1
