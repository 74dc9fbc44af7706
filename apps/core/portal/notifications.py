import logging

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)

REVIEW_SUBJECTS = {
    'admin_rejected': 'Enrollment changes requested by admin',
    'sales_rejected': 'Sales rejected the requested enrollment changes',
    'final_admin_rejected': 'Final configuration changes requested by admin',
    'final_sales_rejected': 'Sales rejected the final configuration changes',
}


def send_welcome_notification(*, name, login_id, credential, contact):
    recipient = (contact or {}).get('email')
    if not recipient:
        logger.warning(f"No email address for portal user {login_id}; welcome notification skipped")
        return False

    message = (
        f"Hello {name},\n\n"
        f"Your client portal account is ready.\n"
        f"Login: {settings.PORTAL_LOGIN_URL}\n"
        f"Username: {login_id}\n"
        f"Temporary password: {credential}\n\n"
        "Please change your password after the first login."
    )
    try:
        send_mail(
            'Welcome to the client portal',
            message,
            settings.DEFAULT_FROM_EMAIL,
            [recipient],
        )
    except Exception:
        logger.exception(f"Failed to send welcome notification to portal user {login_id}")
        return False
    return True


def send_review_notification(*, enrolled_client, recipient, action, actor, remark=''):
    email = getattr(recipient, 'email', '')
    if not email:
        logger.info(f"Review notification {action} for enrollment {enrolled_client.pk} skipped: no recipient email")
        return False

    lead = enrolled_client.lead
    lines = [
        f"Enrollment #{enrolled_client.pk} ({lead.full_name}) needs your attention.",
        f"Action by: {getattr(actor, 'username', 'system')}",
    ]
    if remark:
        lines.append(f"Remark: {remark}")

    try:
        send_mail(
            REVIEW_SUBJECTS.get(action, 'Enrollment review update'),
            '\n'.join(lines),
            settings.DEFAULT_FROM_EMAIL,
            [email],
        )
    except Exception:
        logger.exception(f"Failed to send review notification {action} for enrollment {enrolled_client.pk}")
        return False
    return True
