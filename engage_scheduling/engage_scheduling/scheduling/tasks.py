"""
Scheduled Tasks

Background tasks that run periodically (see scheduler_events in hooks.py):
- generate_appointment_reminders: plans before_appointment reminders
- send_due_reminders: renders and delivers pending reminders that are due

create_status_reminders runs from Schedule Appointment.on_update when the
appointment is confirmed or canceled.
"""

from datetime import datetime, timedelta
from typing import Dict, List

import frappe
import pytz
from frappe.utils import get_system_timezone, now_datetime

from .frappe_adapters import FrappeSchedulingRepository, to_appointment
from .models import ACTIVE_STATUSES, DEFAULT_TIMEZONE
from .reminders import (
	REMINDER_FAILED,
	REMINDER_PENDING,
	REMINDER_SENT,
	REMINDER_SKIPPED,
	STATUS_TRIGGERS,
	TRIGGER_BEFORE_APPOINTMENT,
	ReminderSetting,
	ReminderTemplate,
	max_time_before,
	plan_reminders,
	render_template,
	should_send,
	sweep_dates,
	template_values,
)


REMINDER_EVENT = "engage_scheduling_reminder"
REMINDER_HORIZON_MINUTES = 48 * 60
SEND_BATCH_SIZE = 200


def _system_now() -> datetime:
	"""now_datetime() (naive, timezone del sistema) como datetime aware."""
	return pytz.timezone(get_system_timezone()).localize(now_datetime())


def _to_system_naive(value: datetime) -> datetime:
	"""Datetime aware -> naive en la timezone del sistema (formato de Datetime)."""
	return value.astimezone(pytz.timezone(get_system_timezone())).replace(tzinfo=None)


def _load_templates(schedule_id: str = None, trigger_types=None) -> Dict[str, List[ReminderTemplate]]:
	"""Templates activos con sus settings, agrupados por schedule."""
	filters = {"is_active": 1}
	if schedule_id:
		filters["schedule"] = schedule_id
	if trigger_types:
		filters["trigger_type"] = ["in", list(trigger_types)]

	rows = frappe.get_all(
		"Reminder Template",
		filters=filters,
		fields=["name", "schedule", "trigger_type", "subject", "content"],
		order_by="name asc"
	)
	if not rows:
		return {}

	setting_rows = frappe.get_all(
		"Reminder Setting",
		filters={
			"parent": ["in", [r.name for r in rows]],
			"parenttype": "Reminder Template"
		},
		fields=["name", "parent", "time_before_minutes", "is_active"],
		order_by="idx asc"
	)

	settings_by_template = {}
	for row in setting_rows:
		settings_by_template.setdefault(row.parent, []).append(
			ReminderSetting(
				id=row.name,
				time_before_minutes=row.time_before_minutes or 0,
				is_active=bool(row.is_active),
			)
		)

	templates = {}
	for row in rows:
		templates.setdefault(row.schedule, []).append(
			ReminderTemplate(
				id=row.name,
				schedule_id=row.schedule,
				trigger_type=row.trigger_type,
				content=row.content,
				subject=row.subject,
				settings=settings_by_template.get(row.name, []),
			)
		)
	return templates


def _existing_keys(appointment_ids: List[str]) -> set:
	if not appointment_ids:
		return set()

	rows = frappe.get_all(
		"Appointment Reminder",
		filters={"appointment": ["in", appointment_ids]},
		fields=["appointment", "template", "setting"]
	)
	return {(r.appointment, r.template, r.setting or None) for r in rows}


def _insert_reminders(planned) -> int:
	for reminder in planned:
		frappe.get_doc({
			"doctype": "Appointment Reminder",
			"appointment": reminder.appointment_id,
			"template": reminder.template_id,
			"setting": reminder.setting_id,
			"trigger_type": reminder.trigger_type,
			"status": REMINDER_PENDING,
			"scheduled_for": _to_system_naive(reminder.scheduled_for),
		}).insert(ignore_permissions=True)
	return len(planned)


def generate_appointment_reminders() -> int:
	"""
	Crea los Appointment Reminder before_appointment que faltan.
	Se ejecuta vía cron (configurado en hooks.py).

	Algoritmo:
		1. Cargar templates before_appointment activos, por schedule
		2. Para cada schedule:
			- Rango de fechas: ahora .. ahora + mayor time_before + 48h
			- Citas activas del rango
			- plan_reminders (solo envíos futuros, sin repetir los existentes)
			- Insertar los Appointment Reminder pendientes
		3. Log cantidad creada

	Returns:
		int: Cantidad de recordatorios creados
	"""
	now = _system_now()
	repository = FrappeSchedulingRepository()
	templates_by_schedule = _load_templates(trigger_types=[TRIGGER_BEFORE_APPOINTMENT])

	created_count = 0

	for schedule_id, templates in templates_by_schedule.items():
		try:
			tz_name = frappe.db.get_value("Booking Schedule", schedule_id, "timezone") or DEFAULT_TIMEZONE
			first, last = sweep_dates(now, max_time_before(templates) + REMINDER_HORIZON_MINUTES)

			appointments = []
			day = first
			while day <= last:
				appointments.extend(
					repository.list_appointments(schedule_id, day.isoformat(), ACTIVE_STATUSES)
				)
				day += timedelta(days=1)

			existing = _existing_keys([a.id for a in appointments])

			for appointment in appointments:
				planned = plan_reminders(appointment, tz_name, templates, now, existing)
				existing.update(r.key for r in planned)
				created_count += _insert_reminders(planned)

		except Exception as e:
			frappe.logger("engage_scheduling").error(
				f"Error al generar recordatorios del schedule {schedule_id}: {str(e)}"
			)
			# Continuar con los demás schedules
			continue

	if created_count > 0:
		frappe.logger("engage_scheduling").info(
			f"generate_appointment_reminders: {created_count} recordatorios creados"
		)

	frappe.db.commit()

	return created_count


def create_status_reminders(appointment_name: str) -> int:
	"""
	Crea los recordatorios on_confirmation / on_cancellation de una cita
	recién confirmada o cancelada, y encola su envío tras el commit.

	Returns:
		int: Cantidad de recordatorios creados
	"""
	rows = frappe.get_all(
		"Schedule Appointment",
		filters={"name": appointment_name},
		fields=["name", "schedule", "status"]
	)
	if not rows or rows[0].status not in STATUS_TRIGGERS:
		return 0

	schedule_id = rows[0].schedule
	templates = _load_templates(
		schedule_id=schedule_id,
		trigger_types=[STATUS_TRIGGERS[rows[0].status]]
	).get(schedule_id, [])
	if not templates:
		return 0

	appointment = to_appointment(frappe.get_doc("Schedule Appointment", appointment_name))
	tz_name = frappe.db.get_value("Booking Schedule", schedule_id, "timezone") or DEFAULT_TIMEZONE

	planned = plan_reminders(
		appointment, tz_name, templates, _system_now(), _existing_keys([appointment_name])
	)
	created = _insert_reminders(planned)

	if created:
		frappe.enqueue(
			"engage_scheduling.engage_scheduling.scheduling.tasks.send_due_reminders",
			queue="short",
			enqueue_after_commit=True,
		)
	return created


def send_due_reminders(limit: int = SEND_BATCH_SIZE) -> int:
	"""
	Envía los Appointment Reminder pendientes cuyo scheduled_for ya pasó.
	Se ejecuta vía cron (configurado en hooks.py).

	Algoritmo:
		1. Buscar Appointment Reminder con status = pending y scheduled_for <= now()
		2. Para cada uno:
			- Si la cita ya no está en el estado que lo originó: skipped
			- Renderizar subject y content del template
			- Entregar (handlers de hooks o evento realtime): sent
			- Si falla: failed, con el error guardado y Error Log
		3. Log cantidad enviada

	Returns:
		int: Cantidad de recordatorios enviados
	"""
	due = frappe.get_all(
		"Appointment Reminder",
		filters={"status": REMINDER_PENDING, "scheduled_for": ["<=", now_datetime()]},
		fields=["name"],
		order_by="scheduled_for asc",
		limit=limit
	)

	sent_count = 0

	for row in due:
		try:
			reminder = frappe.get_doc("Appointment Reminder", row.name)
			appointment = frappe.get_doc("Schedule Appointment", reminder.appointment)

			if not should_send(reminder.trigger_type, appointment.status):
				reminder.status = REMINDER_SKIPPED
				reminder.save(ignore_permissions=True)
				continue

			template = frappe.get_doc("Reminder Template", reminder.template)
			values = _template_values(appointment)
			reminder.subject = render_template(template.subject, values)
			reminder.message = render_template(template.content, values)

			_deliver(reminder, appointment)

			reminder.status = REMINDER_SENT
			reminder.sent_at = now_datetime()
			reminder.save(ignore_permissions=True)
			sent_count += 1

		except Exception as e:
			frappe.db.set_value(
				"Appointment Reminder",
				row.name,
				{"status": REMINDER_FAILED, "error": str(e)}
			)
			frappe.log_error(
				f"Error sending reminder {row.name}: {frappe.get_traceback()}",
				"Appointment Reminder"
			)
			# Continuar con los demás recordatorios
			continue

	if sent_count > 0:
		frappe.logger("engage_scheduling").info(
			f"send_due_reminders: {sent_count} recordatorios enviados"
		)

	frappe.db.commit()

	return sent_count


def _template_values(appointment) -> Dict[str, str]:
	schedule = frappe.db.get_value(
		"Booking Schedule", appointment.schedule, ["schedule_title", "organization"], as_dict=True
	) or frappe._dict()
	metadata = frappe.parse_json(appointment.metadata) or {}

	return template_values(
		to_appointment(appointment),
		customer_name=metadata.get("customer_name") or appointment.customer,
		provider_name=frappe.db.get_value("Schedule Provider", appointment.provider, "provider_name"),
		service_title=frappe.db.get_value("Schedule Service", appointment.service, "title"),
		schedule_title=schedule.schedule_title,
		organization_name=schedule.organization,
	)


def _deliver(reminder, appointment) -> None:
	"""
	Entrega un recordatorio.

	Cada app de canal (WhatsApp, chat web, email) registra un handler en
	hooks.py:
		appointment_reminder_handlers = ["my_app.reminders.send"]
	que recibe reminder y appointment. Sin handlers, el recordatorio se
	publica como evento realtime en la room del documento de la cita.
	"""
	handlers = frappe.get_hooks("appointment_reminder_handlers")

	if not handlers:
		frappe.publish_realtime(
			REMINDER_EVENT,
			{
				"appointment_id": appointment.name,
				"customer_id": appointment.customer,
				"trigger_type": reminder.trigger_type,
				"subject": reminder.subject,
				"message": reminder.message,
			},
			doctype="Schedule Appointment",
			docname=appointment.name,
			after_commit=True,
		)
		return

	for handler in handlers:
		frappe.get_attr(handler)(reminder=reminder, appointment=appointment)
