from datetime import datetime, timezone


# The DB stores naive DateTime values; the rule is they are always UTC.
def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
