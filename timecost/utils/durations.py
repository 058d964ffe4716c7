from datetime import datetime

from timecost.schemas.time_entry_schema import TimeRecord


MS_PER_MINUTE = 60_000
MS_PER_DAY = 24 * 60 * MS_PER_MINUTE


def elapsed_ms(start: datetime, end: datetime) -> int:
    delta = end - start
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def worked_minutes(start: datetime, end: datetime, paused_ms: int) -> int:
    """Whole minutes between start and end minus paused time, never negative."""
    return max(0, (elapsed_ms(start, end) - paused_ms) // MS_PER_MINUTE)


def open_pause_ms(record: TimeRecord, now: datetime) -> int:
    if record.is_paused and record.last_paused_at:
        return max(0, elapsed_ms(record.last_paused_at, now))
    return 0


def live_minutes(record: TimeRecord, now: datetime) -> int:
    """Worked minutes of an active record at `now`, including a pause still open."""
    if not record.is_active:
        return 0
    paused = record.paused_duration_ms + open_pause_ms(record, now)
    return worked_minutes(record.start_time, now, paused)


def task_minutes(added_at: datetime, now: datetime, session_start: datetime, paused_ms: int) -> int:
    """Duration of a task that ran from `added_at` to `now`.

    Pauses are not attributed to a specific task; each task absorbs a share of
    the session's paused time proportional to its share of the elapsed time.
    """
    task_elapsed = max(0, elapsed_ms(added_at, now))
    total_elapsed = elapsed_ms(session_start, now)
    share = paused_ms * task_elapsed / total_elapsed if total_elapsed > 0 else 0
    return max(0, int((task_elapsed - share) // MS_PER_MINUTE))


def ceil_days(ms: int) -> int:
    return -(-ms // MS_PER_DAY)


def start_of_day(dt: datetime) -> datetime:
    return datetime(dt.year, dt.month, dt.day)
