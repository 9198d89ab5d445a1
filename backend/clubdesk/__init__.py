"""clubdesk scheduling core: class slots, availability, absences and makeup bookings."""

__version__ = "0.1.0"
