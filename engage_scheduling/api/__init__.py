"""
Engage Scheduling API

Structure:
    api/
    ├── __init__.py              # This file
    ├── booking_api.py           # Whitelisted booking endpoints
    └── security.py              # Rate limiting and honeypot checks

Usage:
    frappe.call("engage_scheduling.api.booking_api.check_availability", ...)
"""
