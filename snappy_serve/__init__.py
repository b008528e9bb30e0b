"""
                Snappy Serve Cafe

Table ordering backend for a small cafe: kitchen order lifecycle,
bills with tax and service charge, phone OTP check-in over WhatsApp/SMS
and daily, weekly and monthly sales reports.
"""

__version__ = "1.0.0"
