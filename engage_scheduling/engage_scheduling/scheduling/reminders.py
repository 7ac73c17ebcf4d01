"""
Appointment Reminders

Planning logic for customer reminders, independent of Frappe:
- "time before" descriptions ("30 minutes", "2 hours", "1 day", "1 week")
- template rendering with {{placeholders}}
- which reminders an appointment needs and when each one is due

Trigger types:
	before_appointment: one reminder per active setting, time_before ahead
	on_confirmation: once, when the appointment becomes confirmed
	on_cancellation: once, when the appointment is canceled

The DocTypes and the cron sweep that use this module live in tasks.py.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytz

from .exceptions import InvalidArgument
from .models import ACTIVE_STATUSES, Appointment, STATUS_CANCELED, STATUS_CONFIRMED
from .time_utils import get_timezone, parse_date, time_to_minutes


TRIGGER_BEFORE_APPOINTMENT = "before_appointment"
TRIGGER_ON_CONFIRMATION = "on_confirmation"
TRIGGER_ON_CANCELLATION = "on_cancellation"
TRIGGER_TYPES = (TRIGGER_BEFORE_APPOINTMENT, TRIGGER_ON_CONFIRMATION, TRIGGER_ON_CANCELLATION)

STATUS_TRIGGERS = {
	STATUS_CONFIRMED: TRIGGER_ON_CONFIRMATION,
	STATUS_CANCELED: TRIGGER_ON_CANCELLATION,
}

REMINDER_PENDING = "pending"
REMINDER_SENT = "sent"
REMINDER_FAILED = "failed"
REMINDER_SKIPPED = "skipped"
REMINDER_STATUSES = (REMINDER_PENDING, REMINDER_SENT, REMINDER_FAILED, REMINDER_SKIPPED)

UNIT_MINUTES = {
	"minute": 1,
	"minutes": 1,
	"hour": 60,
	"hours": 60,
	"day": 24 * 60,
	"days": 24 * 60,
	"week": 7 * 24 * 60,
	"weeks": 7 * 24 * 60,
}

PLACEHOLDER_DEFAULTS = {
	"name": "Customer",
	"provider": "Provider",
	"service": "Service",
	"schedule": "Schedule",
	"organization": "Organization",
}

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*(\w+)\s*\}\}")

PLACEHOLDERS = (
	"name", "provider", "service", "schedule", "date",
	"hour", "start_time", "end_time", "organization"
)


@dataclass
class ReminderSetting:
	id: str
	time_before_minutes: int
	is_active: bool = True


@dataclass
class ReminderTemplate:
	id: str
	schedule_id: str
	trigger_type: str
	content: str
	subject: Optional[str] = None
	is_active: bool = True
	settings: List[ReminderSetting] = field(default_factory=list)


@dataclass
class PlannedReminder:
	appointment_id: str
	template_id: str
	trigger_type: str
	scheduled_for: datetime
	setting_id: Optional[str] = None

	@property
	def key(self) -> Tuple[str, str, Optional[str]]:
		return (self.appointment_id, self.template_id, self.setting_id)


def parse_time_before(value: Any) -> int:
	"""
	Convierte una antelación a minutos.

	Acepta "30 minutes", "1 hour", "2 days", "1 week" o un número de minutos.

	Raises:
		InvalidArgument: formato o unidad no reconocidos, o valor <= 0
	"""
	if isinstance(value, int) and not isinstance(value, bool):
		minutes = value
	else:
		text = str(value or "").strip().lower()
		parts = text.split()
		if text.isdigit():
			minutes = int(text)
		elif len(parts) == 2 and parts[0].isdigit() and parts[1] in UNIT_MINUTES:
			minutes = int(parts[0]) * UNIT_MINUTES[parts[1]]
		else:
			raise InvalidArgument(f"Invalid time before {value!r}", field="time_before")

	if minutes <= 0:
		raise InvalidArgument("Time before must be greater than zero", field="time_before")
	return minutes


def format_time_before(minutes: int) -> str:
	"""Inverso de parse_time_before: 1440 -> "1 day", 90 -> "90 minutes"."""
	for unit, size in (("week", 7 * 24 * 60), ("day", 24 * 60), ("hour", 60)):
		if minutes >= size and minutes % size == 0:
			count = minutes // size
			return f"{count} {unit}" if count == 1 else f"{count} {unit}s"
	return "1 minute" if minutes == 1 else f"{minutes} minutes"


def appointment_start(appointment: Appointment, tz_name: str) -> datetime:
	"""Inicio de la cita como datetime aware en UTC."""
	tz = get_timezone(tz_name)
	day = parse_date(appointment.date)
	naive = datetime(day.year, day.month, day.day) + timedelta(minutes=time_to_minutes(appointment.start_time))
	return tz.localize(naive).astimezone(pytz.UTC)


def template_values(
	appointment: Appointment,
	customer_name: Optional[str] = None,
	provider_name: Optional[str] = None,
	service_title: Optional[str] = None,
	schedule_title: Optional[str] = None,
	organization_name: Optional[str] = None
) -> Dict[str, str]:
	"""Valores de los placeholders para una cita. La fecha va como DD/MM/YYYY."""
	day = parse_date(appointment.date)
	values = {
		"name": customer_name,
		"provider": provider_name,
		"service": service_title,
		"schedule": schedule_title,
		"organization": organization_name,
		"date": day.strftime("%d/%m/%Y"),
		"hour": appointment.start_time,
		"start_time": appointment.start_time,
		"end_time": appointment.end_time,
	}
	for key, default in PLACEHOLDER_DEFAULTS.items():
		if not values[key]:
			values[key] = default
	return values


def render_template(content: Optional[str], values: Dict[str, Any]) -> str:
	"""Reemplaza {{placeholder}}; los desconocidos quedan tal cual."""

	def replace(match):
		key = match.group(1)
		if values.get(key) is None:
			return match.group(0)
		return str(values[key])

	return PLACEHOLDER_PATTERN.sub(replace, content or "")


def unknown_placeholders(content: Optional[str]) -> List[str]:
	found = PLACEHOLDER_PATTERN.findall(content or "")
	return sorted({name for name in found if name not in PLACEHOLDERS})


def max_time_before(templates: Iterable[ReminderTemplate]) -> int:
	"""Mayor antelación activa entre los templates before_appointment."""
	minutes = [
		s.time_before_minutes
		for t in templates
		if t.is_active and t.trigger_type == TRIGGER_BEFORE_APPOINTMENT
		for s in t.settings
		if s.is_active
	]
	return max(minutes) if minutes else 0


def sweep_dates(now: datetime, horizon_minutes: int) -> Tuple[date, date]:
	"""
	Rango de fechas de citas a revisar en un barrido.

	Se amplía un día a cada lado porque la fecha de la cita está en la
	timezone del schedule y ``now`` en UTC.
	"""
	start = (now - timedelta(days=1)).date()
	end = (now + timedelta(minutes=horizon_minutes) + timedelta(days=1)).date()
	return start, end


def plan_reminders(
	appointment: Appointment,
	tz_name: str,
	templates: Iterable[ReminderTemplate],
	now: datetime,
	existing_keys: Iterable[Tuple[str, str, Optional[str]]] = ()
) -> List[PlannedReminder]:
	"""
	Recordatorios que faltan crear para una cita.

	Args:
		appointment: cita (con id)
		tz_name: timezone del schedule
		templates: templates del schedule
		now: datetime aware actual
		existing_keys: (appointment_id, template_id, setting_id) ya creados

	Returns:
		list[PlannedReminder]: ordenada por scheduled_for

	Reglas:
		- before_appointment: solo citas activas, solo si start - time_before
		  todavía está en el futuro
		- on_confirmation / on_cancellation: una vez, con scheduled_for = now,
		  cuando el status de la cita coincide
		- nunca repite una key existente
	"""
	existing = set(existing_keys)
	planned = []

	for template in templates:
		if not template.is_active or template.schedule_id != appointment.schedule_id:
			continue

		if template.trigger_type == TRIGGER_BEFORE_APPOINTMENT:
			if appointment.status not in ACTIVE_STATUSES:
				continue

			start = appointment_start(appointment, tz_name)
			for setting in template.settings:
				if not setting.is_active or setting.time_before_minutes <= 0:
					continue

				scheduled_for = start - timedelta(minutes=setting.time_before_minutes)
				if scheduled_for <= now:
					continue

				reminder = PlannedReminder(
					appointment_id=appointment.id,
					template_id=template.id,
					trigger_type=template.trigger_type,
					scheduled_for=scheduled_for,
					setting_id=setting.id,
				)
				if reminder.key not in existing:
					existing.add(reminder.key)
					planned.append(reminder)

		elif STATUS_TRIGGERS.get(appointment.status) == template.trigger_type:
			reminder = PlannedReminder(
				appointment_id=appointment.id,
				template_id=template.id,
				trigger_type=template.trigger_type,
				scheduled_for=now,
			)
			if reminder.key not in existing:
				existing.add(reminder.key)
				planned.append(reminder)

	planned.sort(key=lambda r: r.scheduled_for)
	return planned


def should_send(trigger_type: str, appointment_status: str) -> bool:
	"""
	Un recordatorio pendiente sigue vigente si la cita está en el estado
	que lo originó (activa para before_appointment).
	"""
	if trigger_type == TRIGGER_BEFORE_APPOINTMENT:
		return appointment_status in ACTIVE_STATUSES
	return STATUS_TRIGGERS.get(appointment_status) == trigger_type
