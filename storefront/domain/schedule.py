from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Mapping, Optional

WEEK_DAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
DAY_LABELS = {
    "monday": "Lunes",
    "tuesday": "Martes",
    "wednesday": "Miércoles",
    "thursday": "Jueves",
    "friday": "Viernes",
    "saturday": "Sábado",
    "sunday": "Domingo",
}
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_time_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def validate_opening_hours(opening_hours: Any) -> Optional[str]:
    """Devuelve un mensaje de error o None si el horario es válido."""
    if not isinstance(opening_hours, Mapping):
        return "Horarios de atención inválidos"
    for day in WEEK_DAYS:
        schedule = opening_hours.get(day)
        if not isinstance(schedule, Mapping) or not isinstance(schedule.get("is_open"), bool):
            return f"Horario inválido para {day}"
        if schedule["is_open"]:
            open_time = schedule.get("open_time")
            close_time = schedule.get("close_time")
            if not open_time or not close_time:
                return f"Faltan horarios para {day}"
            if not TIME_PATTERN.match(str(open_time)) or not TIME_PATTERN.match(str(close_time)):
                return f"Formato de hora inválido para {day}"
    return None


def is_restaurant_open(opening_hours: Mapping[str, Any], now: datetime) -> bool:
    schedule = opening_hours.get(WEEK_DAYS[now.weekday()]) or {}
    if not schedule.get("is_open"):
        return False

    current = now.hour * 60 + now.minute
    open_time = parse_time_to_minutes(schedule.get("open_time") or "00:00")
    close_time = parse_time_to_minutes(schedule.get("close_time") or "23:59")

    # horario que cruza la medianoche
    if close_time < open_time:
        return current >= open_time or current <= close_time
    return open_time <= current <= close_time


def next_opening_time(opening_hours: Mapping[str, Any], now: datetime) -> str:
    today = now.weekday()
    for offset in range(1, 8):
        day = WEEK_DAYS[(today + offset) % 7]
        schedule = opening_hours.get(day) or {}
        if schedule.get("is_open"):
            return f"{DAY_LABELS[day]} a las {schedule.get('open_time')}"
    return "Horario no disponible"


def estimated_preparation_minutes(item_count: int) -> int:
    return 15 + item_count * 3
