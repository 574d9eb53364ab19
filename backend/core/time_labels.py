"""Conversion between display labels such as ``"10:00 AM"`` and ``datetime.time``."""

from datetime import datetime, time

LABEL_FORMAT = '%I:%M %p'
ACCEPTED_FORMATS = ('%I:%M %p', '%I:%M%p', '%H:%M')


def parse_time_label(label: str) -> time:
    normalized = ' '.join(label.strip().upper().split())
    if not normalized:
        raise ValueError('Time slot is required.')

    for fmt in ACCEPTED_FORMATS:
        try:
            return datetime.strptime(normalized, fmt).time()
        except ValueError:
            continue

    raise ValueError(f'Unrecognized time slot "{label}". Use a format like "10:00 AM".')


def format_time_label(value: time) -> str:
    return value.strftime(LABEL_FORMAT)
