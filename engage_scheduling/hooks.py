app_name = "engage_scheduling"
app_title = "Engage Scheduling"
app_publisher = "Sebastian Ortiz Valencia"
app_description = "Motor de disponibilidad y agendamiento de citas para atención multicanal"
app_email = "sebastianortiz989@gmail.com"
app_license = "mit"

# Apps
# ------------------

# required_apps = []

# Installation
# ------------

# before_install = "engage_scheduling.install.before_install"
# after_install = "engage_scheduling.install.after_install"

# Desk Notifications
# ------------------
# Providers are notified through Notification Log entries and the
# "engage_scheduling_appointment" realtime event, see
# engage_scheduling.engage_scheduling.notifications.appointment

# Scheduled Tasks
# ---------------

scheduler_events = {
	"cron": {
		"*/5 * * * *": [  # Cada 5 minutos
			"engage_scheduling.engage_scheduling.scheduling.tasks.generate_appointment_reminders",
			"engage_scheduling.engage_scheduling.scheduling.tasks.send_due_reminders"
		]
	}
}

# Appointment Reminders
# ---------------------
# Channel apps deliver reminders by registering handlers that receive
# (reminder, appointment); without handlers a realtime event is published.

# appointment_reminder_handlers = ["my_channel_app.reminders.send"]

# Permissions
# -----------
# Permissions evaluated in scripted ways

# permission_query_conditions = {
# 	"Schedule Appointment": "engage_scheduling.permissions.get_permission_query_conditions",
# }

# Testing
# -------

# before_tests = "engage_scheduling.install.before_tests"

# Ignore links to specified DocTypes when deleting documents
# -----------------------------------------------------------

ignore_links_on_delete = ["Notification Log"]
