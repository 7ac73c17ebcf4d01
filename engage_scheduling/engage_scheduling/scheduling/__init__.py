"""
Scheduling Services Module

This module provides core business logic for appointment scheduling:
- Time arithmetic (time_utils.py)
- Availability resolution per provider (availability.py)
- Slot generation, standard and arrival-order (slots.py)
- Booking operations (booking.py)
- Tool action dispatch (actions.py)
- Frappe-backed repository (frappe_adapters.py)

Everything except frappe_adapters.py is plain Python and only needs pytz.
"""
