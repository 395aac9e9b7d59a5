"""Google Calendar API wrapper.

Turns an access token into API credentials and fetches raw events. This
module isolates all calendar API code so the meeting-load logic stays clean.
"""

import logging
from datetime import datetime
from typing import Any

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

logger = logging.getLogger(__name__)


def build_credentials(access_token: str) -> Credentials:
    """Wrap a bare access token for the API client.

    The token is not refreshed here; the auth coordinator hands out a fresh
    one for every run.
    """
    return Credentials(token=access_token)


def fetch_events(
    creds: Credentials,
    calendar_id: str,
    time_min: datetime,
    time_max: datetime,
) -> list[dict[str, Any]]:
    """Fetch all events from a Google Calendar in a time window.

    Args:
        creds: Credentials carrying a valid access token.
        calendar_id: Calendar ID (e.g. "primary").
        time_min: Inclusive lower bound (timezone-aware).
        time_max: Exclusive upper bound (timezone-aware).

    Returns:
        List of raw event dicts from the Google Calendar API, across all pages.
    """
    service = build("calendar", "v3", credentials=creds, cache_discovery=False)

    logger.info(
        "Fetching events from calendar '%s' (%s to %s)",
        calendar_id,
        time_min.date(),
        time_max.date(),
    )

    events: list[dict[str, Any]] = []
    page_token = None
    while True:
        events_result = (
            service.events()
            .list(
                calendarId=calendar_id,
                timeMin=time_min.isoformat(),
                timeMax=time_max.isoformat(),
                singleEvents=True,
                orderBy="startTime",
                pageToken=page_token,
            )
            .execute()
        )
        events.extend(events_result.get("items", []))
        page_token = events_result.get("nextPageToken")
        if not page_token:
            break

    logger.info("Retrieved %d events from calendar '%s'", len(events), calendar_id)
    return events
