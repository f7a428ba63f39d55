"""Шаблоны писем. Каждый шаблон возвращает subject, html и text."""
from html import escape
from typing import Any, Dict

from ..config import settings

SIGNATURE_TEXT = "Best regards,\nThe Construction Company Team"
SIGNATURE_HTML = "<p>Best regards,<br>The Construction Company Team</p>"


def _wrap(body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        f"{body}{SIGNATURE_HTML}</div>"
    )


def _items(rows: Dict[str, Any]) -> str:
    return "".join(
        f"<li><strong>{escape(label)}:</strong> {escape(str(value))}</li>"
        for label, value in rows.items()
        if value not in (None, "")
    )


def welcome(name: str) -> Dict[str, str]:
    return {
        "subject": "Welcome to Our Construction Company",
        "html": _wrap(
            f'<h2 style="color: #2c3e50;">Welcome {escape(name)}!</h2>'
            "<p>Thank you for registering with our construction company. "
            "We're excited to have you on board!</p>"
            "<p>You can now access your account and explore our services.</p>"
            f'<p><a href="{escape(settings.CLIENT_URL)}">Visit your account</a></p>'
        ),
        "text": (
            f"Welcome {name}!\n\n"
            "Thank you for registering with our construction company.\n"
            "You can now access your account and explore our services.\n"
            f"{settings.CLIENT_URL}\n\n"
            f"{SIGNATURE_TEXT}"
        ),
    }


def consultation_confirmation(name: str, details: Dict[str, Any]) -> Dict[str, str]:
    rows = {
        "Service": details.get("service"),
        "Preferred Date": details.get("preferred_date"),
        "Description": details.get("description"),
    }
    return {
        "subject": "Consultation Request Confirmation",
        "html": _wrap(
            f'<h2 style="color: #2c3e50;">Hello {escape(name)},</h2>'
            "<p>Thank you for your consultation request. We have received your details:</p>"
            f"<ul>{_items(rows)}</ul>"
            "<p>Our team will review your request and get back to you shortly.</p>"
        ),
        "text": (
            f"Hello {name},\n\n"
            "Thank you for your consultation request. We have received your details:\n"
            + "".join(f"{label}: {value}\n" for label, value in rows.items() if value)
            + f"\nOur team will review your request and get back to you shortly.\n\n{SIGNATURE_TEXT}"
        ),
    }


def admin_new_consultation(details: Dict[str, Any]) -> Dict[str, str]:
    rows = {
        "User": details.get("user_name"),
        "Email": details.get("user_email"),
        "Service": details.get("service"),
        "Project Type": details.get("project_type"),
        "Location": details.get("location"),
        "Urgent": "yes" if details.get("is_urgent") else None,
        "Description": details.get("description"),
    }
    return {
        "subject": "New Consultation Request",
        "html": _wrap(
            '<h2 style="color: #2c3e50;">New Consultation Request</h2>'
            "<p>A new consultation request has been received:</p>"
            f"<ul>{_items(rows)}</ul>"
            "<p>Please review and process this request.</p>"
        ),
        "text": (
            "A new consultation request has been received:\n"
            + "".join(f"{label}: {value}\n" for label, value in rows.items() if value)
            + "\nPlease review and process this request."
        ),
    }


def consultation_status_update(name: str, details: Dict[str, Any]) -> Dict[str, str]:
    rows = {
        "Service": details.get("service"),
        "Project Type": details.get("project_type"),
        "Previous Status": details.get("old_status"),
        "New Status": details.get("new_status"),
        "Reason": details.get("reason"),
    }
    return {
        "subject": f"Consultation Status Updated to {details.get('new_status')}",
        "html": _wrap(
            '<h2 style="color: #2c3e50;">Consultation Status Update</h2>'
            f"<p>Hello {escape(name)},</p>"
            "<p>Your consultation request has been updated:</p>"
            '<div style="background-color: #f8f9fa; padding: 15px; border-radius: 5px; margin: 20px 0;">'
            f'<ul style="list-style: none; padding: 0; margin: 0;">{_items(rows)}</ul></div>'
            "<p>You can view the full details of your consultation by logging into your account.</p>"
            f'<p><a href="{escape(settings.CLIENT_URL)}/dashboard">Open your dashboard</a></p>'
            "<p>If you have any questions, please don't hesitate to contact us.</p>"
        ),
        "text": (
            f"Hello {name},\n\n"
            "Your consultation request has been updated:\n\n"
            + "".join(f"{label}: {value}\n" for label, value in rows.items() if value)
            + "\nYou can view the full details of your consultation by logging into your account.\n"
            + f"{settings.CLIENT_URL}/dashboard\n\n"
            + SIGNATURE_TEXT
        ),
    }
