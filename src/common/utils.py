"""Utility functions for common operations across the worker."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, List


class DateTimeUtils:
    """Date and time utility functions."""

    @staticmethod
    def get_current_utc_datetime() -> datetime:
        """
        Get the current UTC datetime.

        Returns:
            Current datetime in UTC timezone
        """
        return datetime.now(timezone.utc)

    @staticmethod
    def get_date_string_for_log_file() -> str:
        """
        Get a date string suitable for log file names.

        Returns:
            Date string in YYYYMMDD format
        """
        return datetime.now().strftime("%Y%m%d")

    @staticmethod
    def elapsed_seconds(start: datetime) -> float:
        """
        Seconds elapsed since ``start`` (a UTC datetime).

        Example:
            >>> start = DateTimeUtils.get_current_utc_datetime()
            >>> DateTimeUtils.elapsed_seconds(start) >= 0
            True
        """
        return (DateTimeUtils.get_current_utc_datetime() - start).total_seconds()


async def gather_or_cancel(*awaitables: Awaitable[Any]) -> List[Any]:
    """
    Run awaitables concurrently and return their results in order.

    If any of them raises, the others are cancelled and awaited before the
    error propagates, so nothing keeps running after this call returns.
    """
    tasks = [asyncio.ensure_future(aw) for aw in awaitables]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
