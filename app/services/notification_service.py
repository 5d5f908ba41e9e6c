# app/services/notification_service.py
"""
Notification templates, the outbox writer and the outbox dispatcher.

Code that changes state calls ``enqueue_notification`` inside its own
transaction; nothing is sent at that point. ``NotificationDispatcher``
later turns pending outbox rows into in-app notifications and e-mails.
"""

import logging
from typing import Dict, List, Optional

from jinja2 import Environment, Undefined
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.notification import Notification, NotificationOutbox
from app.models.user import User, UserRole
from app.services.email_service import EmailService
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

# missing placeholders render blank; trailing newlines in e-mail bodies are kept
_TEMPLATES = Environment(undefined=Undefined, keep_trailing_newline=True)

# role -> event -> {"title", "in_app", optional "email_subject"/"email_body"}
NOTIFICATION_TEMPLATES: Dict[str, Dict[str, Dict[str, str]]] = {
    UserRole.buyer.value: {
        "account_created": {
            "title": "Welcome aboard",
            "in_app": "Your account is ready. Start browsing outfits to rent.",
            "email_subject": "Welcome, {{full_name}}",
            "email_body": "Hi {{full_name}},\n\nYour account has been created. Browse costumes, "
                          "jewelry and formal wear and book your first rental.\n",
        },
        "kyc_approved": {
            "title": "KYC verified",
            "in_app": "Your identity documents were verified. You can now rent.",
            "email_subject": "Your KYC is verified",
            "email_body": "Hi {{full_name}},\n\nYour KYC documents have been approved.\n",
        },
        "kyc_rejected": {
            "title": "KYC rejected",
            "in_app": "Your KYC was rejected: {{reason}}. Please upload new documents.",
            "email_subject": "Action needed on your KYC",
            "email_body": "Hi {{full_name}},\n\nYour KYC was rejected for this reason: {{reason}}.\n"
                          "Please upload fresh documents from your profile.\n",
        },
        "rental_confirmed": {
            "title": "Rental confirmed",
            "in_app": "Order #{{order_id}} for {{product_name}} is confirmed ({{start_date}} to {{end_date}}).",
            "email_subject": "Order #{{order_id}} confirmed",
            "email_body": "Hi {{full_name}},\n\nYour rental of {{product_name}} from {{start_date}} to "
                          "{{end_date}} is confirmed. Amount payable: {{total_amount}}.\n",
        },
        "delivery_update": {
            "title": "Delivery update",
            "in_app": "Order #{{order_id}} for {{product_name}} is now {{status}}.",
        },
        "return_received": {
            "title": "Return received",
            "in_app": "We received {{product_name}} back for order #{{order_id}}.",
        },
        "late_fee_applied": {
            "title": "Late fee applied",
            "in_app": "A late fee of {{amount}} was added to order #{{order_id}}.",
            "email_subject": "Late fee on order #{{order_id}}",
            "email_body": "Hi {{full_name}},\n\nOrder #{{order_id}} was returned late and a fee of "
                          "{{amount}} has been applied.\n",
        },
        "damage_claim": {
            "title": "Damage claim raised",
            "in_app": "The seller reported damage on {{product_name}} (order #{{order_id}}). An admin will review it.",
        },
        "damage_claim_resolved": {
            "title": "Damage claim {{decision}}",
            "in_app": "The damage claim on order #{{order_id}} was {{decision}}. Damage fee: {{amount}}.",
        },
        "refund_processed": {
            "title": "Deposit processed",
            "in_app": "Your security deposit for order #{{order_id}} was processed ({{action}}). Refund: {{amount}}.",
            "email_subject": "Security deposit update for order #{{order_id}}",
            "email_body": "Hi {{full_name}},\n\nYour deposit for order #{{order_id}} was processed "
                          "({{action}}). Refund amount: {{amount}}.\n",
        },
        "order_cancelled": {
            "title": "Order cancelled",
            "in_app": "Order #{{order_id}} was cancelled. Reason: {{reason}}",
            "email_subject": "Order #{{order_id}} cancelled",
            "email_body": "Hi {{full_name}},\n\nOrder #{{order_id}} has been cancelled. Reason: {{reason}}\n",
        },
        "referral_completed": {
            "title": "Referral reward",
            "in_app": "{{referred_name}} completed their first rental. You earned {{amount}}.",
        },
        "promo_applied": {
            "title": "Discount applied",
            "in_app": "Promo {{code}} saved you {{amount}} on order #{{order_id}}.",
        },
    },
    UserRole.seller.value: {
        "account_created": {
            "title": "Welcome aboard",
            "in_app": "Your seller account is ready. Complete KYC to start listing.",
            "email_subject": "Welcome, {{full_name}}",
            "email_body": "Hi {{full_name}},\n\nYour seller account has been created. Complete KYC "
                          "and list your first product.\n",
        },
        "kyc_approved": {
            "title": "KYC verified",
            "in_app": "Your identity documents were verified. You can now list products.",
            "email_subject": "Your KYC is verified",
            "email_body": "Hi {{full_name}},\n\nYour KYC documents have been approved.\n",
        },
        "kyc_rejected": {
            "title": "KYC rejected",
            "in_app": "Your KYC was rejected: {{reason}}. Please upload new documents.",
        },
        "product_listed": {
            "title": "Product listed",
            "in_app": "{{product_name}} is now listed.",
        },
        "product_booked": {
            "title": "New booking",
            "in_app": "{{product_name}} was booked from {{start_date}} to {{end_date}} (order #{{order_id}}).",
            "email_subject": "New booking for {{product_name}}",
            "email_body": "Hi {{full_name}},\n\n{{product_name}} has been booked from {{start_date}} to "
                          "{{end_date}}. Please have it ready for pickup.\n",
        },
        "delivery_update": {
            "title": "Delivery update",
            "in_app": "Order #{{order_id}} for {{product_name}} is now {{status}}.",
        },
        "product_returned": {
            "title": "Product returned",
            "in_app": "{{product_name}} was returned for order #{{order_id}}.",
        },
        "late_return": {
            "title": "Late return",
            "in_app": "{{product_name}} came back {{days_late}} day(s) late. A late fee of {{amount}} applies.",
        },
        "damage_reported": {
            "title": "Damage claim submitted",
            "in_app": "Your damage claim for order #{{order_id}} is under admin review.",
        },
        "damage_claim_resolved": {
            "title": "Damage claim {{decision}}",
            "in_app": "The damage claim on order #{{order_id}} was {{decision}}. Damage fee: {{amount}}.",
        },
        "security_deposit_refunded": {
            "title": "Deposit processed",
            "in_app": "The buyer's deposit for order #{{order_id}} was processed ({{action}}).",
        },
        "order_cancelled": {
            "title": "Order cancelled",
            "in_app": "Order #{{order_id}} was cancelled. Reason: {{reason}}",
        },
        "review_received": {
            "title": "New review",
            "in_app": "{{product_name}} received a {{rating}}-star review.",
        },
        "payout_sent": {
            "title": "Payout sent",
            "in_app": "Your withdrawal of {{amount}} was marked {{status}}.",
            "email_subject": "Payout update",
            "email_body": "Hi {{full_name}},\n\nYour withdrawal of {{amount}} is now {{status}}.\n",
        },
        "referral_completed": {
            "title": "Referral reward",
            "in_app": "{{referred_name}} completed their first rental. You earned {{amount}}.",
        },
    },
    UserRole.delivery_partner.value: {
        "delivery_assigned": {
            "title": "New assignment",
            "in_app": "You were assigned order #{{order_id}} ({{assignment_type}}).",
            "email_subject": "New delivery assignment #{{order_id}}",
            "email_body": "Hi {{full_name}},\n\nOrder #{{order_id}} has been assigned to you "
                          "({{assignment_type}}).\n",
        },
        "kyc_approved": {
            "title": "KYC verified",
            "in_app": "Your identity documents were verified.",
        },
        "kyc_rejected": {
            "title": "KYC rejected",
            "in_app": "Your KYC was rejected: {{reason}}.",
        },
    },
    UserRole.admin.value: {
        "new_user_registered": {
            "title": "New user",
            "in_app": "{{user_name}} signed up as {{user_role}}.",
        },
        "rental_order_placed": {
            "title": "New order",
            "in_app": "Order #{{order_id}} placed for {{product_name}} ({{total_amount}}).",
        },
        "damage_reported": {
            "title": "Damage claim to review",
            "in_app": "Seller reported damage on order #{{order_id}}: {{description}}",
            "email_subject": "Damage claim on order #{{order_id}}",
            "email_body": "A damage claim was raised on order #{{order_id}}.\n\n{{description}}\n",
        },
        "kyc_submitted": {
            "title": "KYC to review",
            "in_app": "{{user_name}} submitted KYC documents for review.",
        },
        "withdrawal_requested": {
            "title": "Withdrawal request",
            "in_app": "{{user_name}} requested a withdrawal of {{amount}}.",
        },
    },
}

ADMIN_EVENTS = frozenset(NOTIFICATION_TEMPLATES[UserRole.admin.value])


def render(template: str, placeholders: Dict[str, object]) -> str:
    return _TEMPLATES.from_string(template).render(**placeholders)


def get_template(role: str, event: str) -> Optional[Dict[str, str]]:
    return NOTIFICATION_TEMPLATES.get(role, {}).get(event)


def enqueue_notification(
    db: Session,
    user_id: Optional[int],
    event: str,
    placeholders: Optional[Dict[str, object]] = None,
) -> NotificationOutbox:
    """Record a notification intent. The caller's commit persists it."""
    entry = NotificationOutbox(
        user_id=user_id,
        event=event,
        placeholders={k: str(v) for k, v in (placeholders or {}).items()},
    )
    db.add(entry)
    return entry


def enqueue_admin_notification(db: Session, event: str, placeholders: Optional[Dict[str, object]] = None):
    return enqueue_notification(db, None, event, placeholders)


class NotificationDispatcher:
    """Delivers pending outbox rows"""

    def __init__(self, email_service: Optional[EmailService] = None, max_attempts: Optional[int] = None):
        self.email_service = email_service or EmailService()
        self.max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS

    def _recipients(self, db: Session, entry: NotificationOutbox) -> List[User]:
        if entry.user_id is None:
            return db.query(User).filter(
                User.role == UserRole.admin.value,
                User.is_active.is_(True),
            ).all()
        user = db.query(User).filter(User.id == entry.user_id).first()
        return [user] if user else []

    def dispatch_entry(self, db: Session, entry: NotificationOutbox) -> int:
        """Deliver one row. Returns the number of in-app notifications created."""
        pending = []
        for user in self._recipients(db, entry):
            template = get_template(user.role, entry.event)
            if template is None:
                logger.debug(f"No '{entry.event}' template for role {user.role}")
                continue

            values = {"full_name": user.full_name, **(entry.placeholders or {})}
            if "email_subject" in template and user.email_notifications:
                self.email_service.send_email(
                    to=user.email,
                    subject=render(template["email_subject"], values),
                    body=render(template["email_body"], values),
                )
            pending.append(Notification(
                user_id=user.id,
                event=entry.event,
                title=render(template["title"], values),
                message=render(template["in_app"], values),
                link=values.get("link"),
            ))

        # in-app rows are only written once every e-mail went out
        db.add_all(pending)
        return len(pending)

    def dispatch_pending(self, db: Session, batch_size: Optional[int] = None) -> Dict[str, int]:
        batch_size = batch_size or settings.OUTBOX_BATCH_SIZE
        entries = (
            db.query(NotificationOutbox)
            .filter(NotificationOutbox.status == "pending")
            .order_by(NotificationOutbox.created_at, NotificationOutbox.id)
            .limit(batch_size)
            .all()
        )

        summary = {"processed": 0, "sent": 0, "failed": 0, "retrying": 0}
        for entry in entries:
            summary["processed"] += 1
            entry.attempts += 1
            try:
                self.dispatch_entry(db, entry)
            except Exception as e:
                # a failed notification never affects the change that queued it
                logger.error(f"Notification {entry.id} ({entry.event}) failed on attempt {entry.attempts}: {e}")
                entry.last_error = str(e)[:500]
                if entry.attempts >= self.max_attempts:
                    entry.status = "failed"
                    entry.processed_at = utcnow()
                    summary["failed"] += 1
                else:
                    summary["retrying"] += 1
            else:
                entry.status = "sent"
                entry.processed_at = utcnow()
                entry.last_error = None
                summary["sent"] += 1
            db.commit()

        if entries:
            logger.info(f"Outbox dispatch: {summary}")
        return summary
