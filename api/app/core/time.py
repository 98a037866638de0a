"""Central time utilities for the application.

Timestamps are stored in naive DateTime columns (TIMESTAMP WITHOUT TIME
ZONE) holding UTC values.
"""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Return current UTC time as a naive datetime object.

    Avoids the DeprecationWarning from datetime.utcnow() while staying
    comparable with the naive values read back from the database.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)

