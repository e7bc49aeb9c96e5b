"""
Symbol table for template resolution.

Each TransformEngine owns one SymbolTable; the engine writes well-known
keys (run date/time decompositions, row counters, job paths, run count)
and stages resolve "${name}" references in their options against it.
"""

import logging
import string
from datetime import datetime, timedelta
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class Symbols:
    """Well-known symbol names written by the engine and contexts."""

    JOB_ID = "JobId"
    JOB_NAME = "JobName"
    JOB_DIRECTORY = "JobDirectory"
    WORK_DIRECTORY = "WorkDirectory"
    RUN_COUNT = "RunCount"

    # Current frame
    CURRENT_FRAME = "CurrentFrame"
    LAST_FRAME = "LastFrame"

    # Run date/time
    DATE = "Date"
    TIME = "Time"
    DATETIME = "DateTime"
    CURRENT_RUN_DATE = "CurrentRunDate"
    CURRENT_RUN_TIME = "CurrentRunTime"
    CURRENT_RUN_DATETIME = "CurrentRunDateTime"
    CURRENT_RUN_MILLIS = "CurrentRunEpochMillis"
    CURRENT_RUN_SECONDS = "CurrentRunEpochSeconds"
    YEAR = "year"
    MONTH = "month"
    DAY = "day"
    HOUR = "hour"
    MINUTE = "minute"
    SECOND = "second"
    MILLISECOND = "millisecond"
    YEAR_YYYY = "YYYY"
    MONTH_MM = "MM"
    DAY_DD = "DD"
    HOUR_24 = "HH"
    HOUR_12 = "hh"
    MINUTE_MM = "mm"
    SECOND_SS = "ss"
    MILLISECOND_ZZZ = "SSS"
    SECONDS_PAST_MIDNIGHT = "SecondsPastMidnight"
    SECONDS_TILL_MIDNIGHT = "SecondsTillMidnight"

    # Start of the previous run, published by PersistentContext
    PREVIOUS_RUN_DATE = "PreviousRunDate"
    PREVIOUS_RUN_TIME = "PreviousRunTime"
    PREVIOUS_RUN_DATETIME = "PreviousRunDateTime"
    PREVIOUS_RUN_MILLIS = "PreviousRunEpochMillis"
    PREVIOUS_RUN_SECONDS = "PreviousRunEpochSeconds"

    # Previous day / previous month
    PREV_YEAR_PYYY = "PYYYY"
    PREV_MONTH_PM = "PM"
    PREV_DAY_PD = "PD"
    PREV_YEAR_LMYY = "LMYYYY"
    PREV_MONTH_LM = "LM"

    # Command line arguments, posted as Arg0, Arg1, ...
    COMMAND_LINE_ARG_PREFIX = "Arg"


class SymbolTable(dict):
    """
    String-keyed table of values used for "${name}" substitution.

    A plain dict: not thread-safe, so it is scoped per engine instance.
    """

    def get_string(self, key: str) -> Optional[str]:
        value = self.get(key)
        return None if value is None else str(value)

    def put(self, key: str, value: Any) -> None:
        """Set a symbol; None removes it."""
        if value is None:
            self.pop(key, None)
        else:
            self[key] = value

    def resolve(self, text: Optional[str]) -> Optional[str]:
        """
        Substitute "${name}" references with symbol values.

        Unknown names are left untouched.
        """
        if text is None or "$" not in text:
            return text
        values = {k: str(v) for k, v in self.items()}
        return string.Template(text).safe_substitute(values)

    def put_arguments(self, args: list[str]) -> None:
        """Post command line arguments as Arg0, Arg1, ..."""
        for index, arg in enumerate(args):
            self[f"{Symbols.COMMAND_LINE_ARG_PREFIX}{index}"] = arg


def populate_run_date(symbols: SymbolTable, rundate: datetime) -> None:
    """
    Place date and time decompositions of the run timestamp in the table.

    Args:
        symbols: Table to update.
        rundate: Timestamp the run started (naive local time).
    """
    epoch_millis = int(rundate.timestamp() * 1000)

    symbols[Symbols.DATE] = rundate.strftime(DATE_FORMAT)
    symbols[Symbols.TIME] = rundate.strftime(TIME_FORMAT)
    symbols[Symbols.DATETIME] = rundate.strftime(DATETIME_FORMAT)
    symbols[Symbols.CURRENT_RUN_DATE] = rundate.strftime(DATE_FORMAT)
    symbols[Symbols.CURRENT_RUN_TIME] = rundate.strftime(TIME_FORMAT)
    symbols[Symbols.CURRENT_RUN_DATETIME] = rundate.strftime(DATETIME_FORMAT)
    symbols[Symbols.CURRENT_RUN_MILLIS] = epoch_millis
    symbols[Symbols.CURRENT_RUN_SECONDS] = epoch_millis // 1000

    millis = rundate.microsecond // 1000
    hour_12 = rundate.hour % 12
    symbols[Symbols.YEAR] = str(rundate.year)
    symbols[Symbols.MONTH] = str(rundate.month)
    symbols[Symbols.DAY] = str(rundate.day)
    symbols[Symbols.HOUR] = str(hour_12)
    symbols[Symbols.MINUTE] = str(rundate.minute)
    symbols[Symbols.SECOND] = str(rundate.second)
    symbols[Symbols.MILLISECOND] = str(millis)
    symbols[Symbols.YEAR_YYYY] = f"{rundate.year:04d}"
    symbols[Symbols.MONTH_MM] = f"{rundate.month:02d}"
    symbols[Symbols.DAY_DD] = f"{rundate.day:02d}"
    symbols[Symbols.HOUR_24] = f"{rundate.hour:02d}"
    symbols[Symbols.HOUR_12] = f"{hour_12:02d}"
    symbols[Symbols.MINUTE_MM] = f"{rundate.minute:02d}"
    symbols[Symbols.SECOND_SS] = f"{rundate.second:02d}"
    symbols[Symbols.MILLISECOND_ZZZ] = f"{millis:03d}"

    midnight = rundate.replace(hour=0, minute=0, second=0, microsecond=0)
    past_midnight = int((rundate - midnight).total_seconds())
    till_midnight = int((midnight + timedelta(days=1) - rundate).total_seconds())
    symbols[Symbols.SECONDS_PAST_MIDNIGHT] = f"{past_midnight:05d}"
    symbols[Symbols.SECONDS_TILL_MIDNIGHT] = f"{till_midnight:05d}"

    yesterday = rundate - timedelta(days=1)
    symbols[Symbols.PREV_YEAR_PYYY] = f"{yesterday.year:04d}"
    symbols[Symbols.PREV_MONTH_PM] = f"{yesterday.month:02d}"
    symbols[Symbols.PREV_DAY_PD] = f"{yesterday.day:02d}"

    last_month = rundate + relativedelta(months=-1)
    symbols[Symbols.PREV_YEAR_LMYY] = f"{last_month.year:04d}"
    symbols[Symbols.PREV_MONTH_LM] = f"{last_month.month:02d}"

    logger.debug(f"Run date symbols set for {symbols[Symbols.DATETIME]}")


def populate_previous_run_date(symbols: SymbolTable, previous: datetime) -> None:
    """Place the start of the previous run in the table."""
    epoch_millis = int(previous.timestamp() * 1000)
    symbols[Symbols.PREVIOUS_RUN_DATE] = previous.strftime(DATE_FORMAT)
    symbols[Symbols.PREVIOUS_RUN_TIME] = previous.strftime(TIME_FORMAT)
    symbols[Symbols.PREVIOUS_RUN_DATETIME] = previous.strftime(DATETIME_FORMAT)
    symbols[Symbols.PREVIOUS_RUN_MILLIS] = epoch_millis
    symbols[Symbols.PREVIOUS_RUN_SECONDS] = epoch_millis // 1000
