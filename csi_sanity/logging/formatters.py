"""Logging formatters for lifecycle narration."""

import logging


class StepFormatter(logging.Formatter):
    """Logging formatter that marks lifecycle steps based on extra parameter."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with a step prefix if present.

        Parameters
        ----------
        record : logging.LogRecord
            Log record to format

        Returns
        -------
        str
            Formatted log message, prefixed with ``STEP:`` for step records
        """
        msg = super().format(record)

        if getattr(record, "step", False):
            return f"STEP: {msg}"

        return msg
