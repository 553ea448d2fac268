from datetime import UTC, datetime, timedelta


def dt_utc() -> datetime:
    return datetime.now(UTC)


def dt_utc_offset(minutes: int) -> datetime:
    return dt_utc() + timedelta(minutes=minutes)


def months_ago(months: int) -> datetime:
    now = dt_utc()
    year, month = now.year, now.month - months
    while month <= 0:
        month += 12
        year -= 1
    return now.replace(year=year, month=month, day=1, hour=0, minute=0, second=0, microsecond=0)
