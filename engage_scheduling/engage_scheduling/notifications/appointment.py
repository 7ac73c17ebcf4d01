# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

"""
Appointment Notification Service

Informs a schedule's providers when an appointment is created or canceled.
Each recipient gets a Notification Log entry (desk bell) and a realtime
event on the ``engage_scheduling_appointment`` channel.
"""

from typing import Any, Dict, List

import frappe

from engage_scheduling.engage_scheduling.scheduling.exceptions import NotificationError
from engage_scheduling.engage_scheduling.scheduling.repository import Notifier


REALTIME_EVENT = "engage_scheduling_appointment"


class FrappeNotifier(Notifier):
	"""Notifier que encola el envío tras el commit de la transacción."""

	def notify(
		self,
		recipient_ids: List[str],
		heading: str,
		content: str,
		data: Dict[str, Any],
	) -> None:
		try:
			frappe.enqueue(
				"engage_scheduling.engage_scheduling.notifications.appointment.send_provider_notification",
				recipient_ids=list(recipient_ids),
				heading=heading,
				content=content,
				data=data,
				queue="short",
				enqueue_after_commit=True,
			)
		except Exception as e:
			raise NotificationError(f"Could not enqueue notification: {e}")


def send_provider_notification(
	recipient_ids: List[str],
	heading: str,
	content: str,
	data: Dict[str, Any]
) -> None:
	"""
	Crea las Notification Log y publica el evento realtime.

	Corre como background job; los errores se registran en Error Log.

	Args:
		recipient_ids: usuarios (Schedule Provider.user) a notificar
		heading: título
		content: texto del aviso
		data: payload con appointment_id y schedule_id
	"""
	try:
		appointment_id = data.get("appointment_id")

		for user in recipient_ids:
			if not frappe.db.exists("User", user):
				frappe.logger("engage_scheduling").warning(
					f"Notification skipped for unknown user {user}"
				)
				continue

			frappe.get_doc({
				"doctype": "Notification Log",
				"for_user": user,
				"type": "Alert",
				"subject": heading,
				"email_content": content,
				"document_type": "Schedule Appointment" if appointment_id else None,
				"document_name": appointment_id,
			}).insert(ignore_permissions=True)

			frappe.publish_realtime(
				REALTIME_EVENT,
				{"heading": heading, "content": content, **data},
				user=user,
			)

		frappe.db.commit()

	except Exception:
		frappe.log_error(
			f"Error sending appointment notification: {frappe.get_traceback()}",
			"Appointment Notification"
		)
