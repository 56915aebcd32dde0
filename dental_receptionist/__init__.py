"""
AI Dental Receptionist - WhatsApp appointment assistant for a dental clinic.
"""

__version__ = "1.0.0"
