"""Meeting load - how much of the working week goes to meetings.

An event counts towards the total when it is a timed (not all-day) event,
is not a working-location marker, the user is attending or organising it,
and it touches working hours (07:00-18:00 in the event's own timezone).
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

WORK_HOURS_PER_WEEK = 40.0

# Events must start before this hour and end after WORKDAY_START_HOUR
WORKDAY_START_HOUR = 7
WORKDAY_END_HOUR = 18


@dataclass
class MeetingLoad:
    """Aggregate meeting time for a date range."""

    meeting_minutes: int
    work_hours: float
    details: list[str] = field(default_factory=list)

    @property
    def meeting_hours(self) -> float:
        return self.meeting_minutes / 60.0

    @property
    def non_meeting_hours(self) -> float:
        return self.work_hours - self.meeting_hours

    @property
    def percentage(self) -> float:
        if self.work_hours <= 0:
            return 0.0
        return self.meeting_hours * 100.0 / self.work_hours


def week_range(weeks: int = 1, today: datetime | None = None) -> tuple[datetime, datetime]:
    """Calculate the Monday-to-Saturday window starting this ISO week.

    Args:
        weeks: Number of consecutive weeks to cover.
        today: Reference time; defaults to now (UTC).

    Returns:
        Tuple of (start, end): Monday 00:00 UTC of this week and Saturday
        00:00 UTC of the last covered week.
    """
    if weeks < 1:
        raise ValueError("weeks must be at least 1")
    today = today or datetime.now(timezone.utc)
    # Monday is weekday 0
    monday = datetime(today.year, today.month, today.day, tzinfo=timezone.utc) - timedelta(
        days=today.weekday()
    )
    saturday = monday + timedelta(weeks=weeks - 1, days=5)
    return monday, saturday


def _parse_datetime(value: str) -> datetime:
    # e.g. "2025-02-17T09:00:00-08:00" or "2025-02-17T17:00:00Z"
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _is_attending(event: dict[str, Any]) -> bool:
    for attendee in event.get("attendees", []):
        if attendee.get("self") and attendee.get("responseStatus") != "declined":
            return True
    return bool(event.get("organizer", {}).get("self"))


def meeting_window(event: dict[str, Any]) -> tuple[datetime, datetime] | None:
    """Return (start, end) if the event counts as a meeting, else None."""
    if event.get("eventType") == "workingLocation":
        return None

    start = event.get("start", {})
    end = event.get("end", {})
    # All-day events use "date", timed events use "dateTime"
    if "dateTime" not in start or "dateTime" not in end:
        return None

    start_dt = _parse_datetime(start["dateTime"])
    end_dt = _parse_datetime(end["dateTime"])

    if not (start_dt.hour < WORKDAY_END_HOUR and end_dt.hour > WORKDAY_START_HOUR):
        return None
    if not _is_attending(event):
        return None

    return start_dt, end_dt


def compute_meeting_load(
    events: list[dict[str, Any]],
    work_hours: float = WORK_HOURS_PER_WEEK,
) -> MeetingLoad:
    """Sum the duration of all meetings in a list of raw calendar events.

    Args:
        events: Raw event dicts from the Google Calendar API.
        work_hours: Working hours available in the covered range.

    Returns:
        A MeetingLoad with one detail line per counted meeting.
    """
    total_minutes = 0
    details: list[str] = []

    for event in events:
        window = meeting_window(event)
        if window is None:
            continue
        start_dt, end_dt = window
        minutes = int((end_dt - start_dt).total_seconds() // 60)
        total_minutes += minutes
        details.append(
            f"{start_dt:%a} {start_dt:%H:%M:%S}: [{minutes}mins] {event.get('summary', '')}"
        )

    return MeetingLoad(meeting_minutes=total_minutes, work_hours=work_hours, details=details)


def format_meeting_load(load: MeetingLoad, details: bool = False) -> str:
    """Render the meeting load the way the CLI prints it."""
    lines = [
        f"  Total meeting time this week: {load.meeting_hours:.2f} / "
        f"{load.work_hours:.2f} [{load.percentage:.2f}%]",
        f"  Non-Meeting time: {load.non_meeting_hours:.2f}",
    ]
    if details:
        lines.extend(f"    > {line}" for line in load.details)
    return "\n".join(lines)
