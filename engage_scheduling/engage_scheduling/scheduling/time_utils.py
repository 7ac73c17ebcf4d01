"""
Time Arithmetic

Conversions between ``HH:MM`` clock strings and minutes since midnight, and
between a calendar date and its weekday as observed in a schedule timezone.
Weekdays are numbered 0 (Sunday) to 6 (Saturday).
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Union

import pytz

from .exceptions import InvalidArgument, InvalidTimeFormat


MINUTES_PER_DAY = 24 * 60

# indice = weekday (0 = domingo)
WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def time_to_minutes(clock: str) -> int:
	"""
	Convierte ``HH:MM`` (o ``HH:MM:SS``) a minutos desde medianoche.

	Los segundos se toleran y se ignoran.

	Raises:
		InvalidTimeFormat: formato inválido u hora/minuto fuera de rango
	"""
	if not isinstance(clock, str):
		raise InvalidTimeFormat(f"Invalid time {clock!r}, expected HH:MM")

	match = _CLOCK_RE.match(clock.strip())
	if not match:
		raise InvalidTimeFormat(f"Invalid time {clock!r}, expected HH:MM")

	hours, minutes = int(match.group(1)), int(match.group(2))
	if hours > 23 or minutes > 59:
		raise InvalidTimeFormat(f"Time out of range: {clock!r}")
	if match.group(3) is not None and int(match.group(3)) > 59:
		raise InvalidTimeFormat(f"Time out of range: {clock!r}")

	return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
	"""Inversa de time_to_minutes: 570 -> "09:30"."""
	if minutes < 0 or minutes >= MINUTES_PER_DAY:
		raise InvalidTimeFormat(f"Minutes out of range: {minutes}")
	return f"{minutes // 60:02d}:{minutes % 60:02d}"


def to_clock(time_value: Union[time, timedelta, str]) -> str:
	"""
	Normaliza un valor de hora a ``HH:MM``.

	Args:
		time_value: puede ser time, timedelta (desde medianoche, como los
			campos Time de la base de datos) o string

	Returns:
		str: "HH:MM"
	"""
	if isinstance(time_value, time):
		return time_value.strftime("%H:%M")
	elif isinstance(time_value, timedelta):
		# timedelta representa tiempo desde medianoche
		return (datetime.min + time_value).time().strftime("%H:%M")
	elif isinstance(time_value, str):
		return minutes_to_time(time_to_minutes(time_value))
	else:
		raise InvalidTimeFormat(f"Cannot convert {type(time_value)} to time")


def parse_date(value: Union[date, str]) -> date:
	"""Valida una fecha de calendario ``YYYY-MM-DD``."""
	if isinstance(value, datetime):
		return value.date()
	if isinstance(value, date):
		return value
	if not isinstance(value, str) or not _DATE_RE.match(value.strip()):
		raise InvalidArgument(f"Invalid date {value!r}, expected YYYY-MM-DD", field="date")
	try:
		return datetime.strptime(value.strip(), "%Y-%m-%d").date()
	except ValueError:
		raise InvalidArgument(f"Invalid date {value!r}", field="date")


def get_timezone(tz_name: str) -> pytz.tzinfo.BaseTzInfo:
	try:
		return pytz.timezone(tz_name)
	except pytz.UnknownTimeZoneError:
		raise InvalidArgument(f"Unknown timezone {tz_name!r}", field="timezone")


def weekday_of(target_date: Union[date, str], tz_name: str) -> int:
	"""
	Día de la semana (0 = domingo) de la fecha en la timezone del schedule.

	La fecha se ancla a las 12:00 locales antes de leer el día, para que
	las transiciones de horario de verano no la desplacen.
	"""
	tz = get_timezone(tz_name)
	noon = tz.localize(datetime.combine(parse_date(target_date), time(12, 0)))
	return noon.isoweekday() % 7