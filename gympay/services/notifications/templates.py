"""Email bodies for bank transfer decisions."""
import html
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from gympay.core.config import settings


@dataclass
class EmailMessage:
    subject: str
    text: str
    html: str


_LAYOUT = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{title}</title></head>
<body style="font-family: 'Segoe UI', Tahoma, sans-serif; background: #0f0f0f; color: #ffffff; margin: 0; padding: 0;">
  <div style="max-width: 650px; margin: 0 auto; background: #1e1e1e; border-radius: 12px; padding: 30px;">
    <div style="text-align: center; font-size: 28px; font-weight: 800; color: #AAFF69; letter-spacing: 2px;">{gym}</div>
    <h1 style="text-align: center; font-size: 24px; color: {accent};">{title}</h1>
    <p>Hi {name},</p>
    <p>{lead}</p>
    <table style="width: 100%; border-collapse: collapse; margin: 20px 0;">
      <tr><td style="padding: 6px 0; color: #aaaaaa;">Membership</td><td>{membership}</td></tr>
      <tr><td style="padding: 6px 0; color: #aaaaaa;">Amount</td><td>{currency} {amount}</td></tr>
      <tr><td style="padding: 6px 0; color: #aaaaaa;">Reference</td><td>{reference}</td></tr>
      <tr><td style="padding: 6px 0; color: #aaaaaa;">Date</td><td>{date}</td></tr>
    </table>
    {notes}
    <p style="color: #aaaaaa; font-size: 13px;">{footer}</p>
  </div>
</body>
</html>"""


def _format_date(value: datetime) -> str:
    return value.strftime("%B %d, %Y %I:%M %p")


def _render(
    title: str,
    accent: str,
    user_name: str,
    lead: str,
    membership_name: str,
    amount: Decimal,
    currency: str,
    reference: str,
    decided_at: datetime,
    admin_notes: str | None,
    notes_label: str,
    footer: str,
) -> str:
    notes = ""
    if admin_notes:
        notes = (
            f'<p><strong>{html.escape(notes_label)}:</strong> {html.escape(admin_notes)}</p>'
        )
    return _LAYOUT.format(
        title=html.escape(title),
        accent=accent,
        gym=html.escape(settings.gym_name),
        name=html.escape(user_name),
        lead=html.escape(lead),
        membership=html.escape(membership_name),
        currency=html.escape(currency),
        amount=f"{Decimal(amount):.2f}",
        reference=html.escape(reference),
        date=_format_date(decided_at),
        notes=notes,
        footer=html.escape(footer),
    )


def bank_transfer_approved(
    user_name: str,
    membership_name: str,
    amount: Decimal,
    currency: str,
    reference: str,
    decided_at: datetime,
    admin_notes: str | None = None,
) -> EmailMessage:
    lead = "Your bank transfer payment has been approved and your membership is now active."
    return EmailMessage(
        subject=f"Bank Transfer Payment Approved - {settings.gym_name}",
        text=(
            f"Hi {user_name}, your bank transfer payment for {membership_name} "
            f"({currency} {Decimal(amount):.2f}) has been approved. Transaction ID: {reference}. "
            "Your membership has been activated."
        ),
        html=_render(
            "Bank Transfer Approved",
            "#10b981",
            user_name,
            lead,
            membership_name,
            amount,
            currency,
            reference,
            decided_at,
            admin_notes,
            "Notes",
            "Welcome aboard. See you at the gym.",
        ),
    )


def bank_transfer_declined(
    user_name: str,
    membership_name: str,
    amount: Decimal,
    currency: str,
    reference: str,
    decided_at: datetime,
    admin_notes: str | None = None,
) -> EmailMessage:
    reason = f" Reason: {admin_notes}" if admin_notes else ""
    lead = "Unfortunately your bank transfer payment could not be verified and has been declined."
    return EmailMessage(
        subject=f"Bank Transfer Payment Declined - {settings.gym_name}",
        text=(
            f"Hi {user_name}, unfortunately your bank transfer payment for {membership_name} "
            f"({currency} {Decimal(amount):.2f}) has been declined.{reason} "
            "Please contact support for assistance."
        ),
        html=_render(
            "Bank Transfer Declined",
            "#ef4444",
            user_name,
            lead,
            membership_name,
            amount,
            currency,
            reference,
            decided_at,
            admin_notes,
            "Reason",
            "If you believe this is a mistake, please contact our support team.",
        ),
    )
