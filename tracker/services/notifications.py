import logging
from datetime import timedelta

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.db import DatabaseError
from django.db.models import F
from django.template.loader import render_to_string
from django.utils import timezone

from tracker.exceptions import StorageFailure, StudentNotFound
from tracker.models import Student
from tracker.services import store

logger = logging.getLogger(__name__)


def send_email(to: str, subject: str, text_body: str, html_body: str | None = None) -> bool:
    """
    Fire-and-forget delivery. Failures are logged together with the message
    that could not be sent; nothing is raised.
    """
    message = EmailMultiAlternatives(
        subject=subject,
        body=text_body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[to],
    )
    if html_body:
        message.attach_alternative(html_body, "text/html")
    try:
        message.send()
    except Exception:
        logger.exception(
            "Error sending email to %s. Undelivered message:\nSubject: %s\n%s",
            to,
            subject,
            text_body,
        )
        return False
    logger.info("Email sent to %s: %s", to, subject)
    return True


def _increment_reminder_counter(student: Student) -> int:
    try:
        Student.objects.filter(pk=student.pk).update(
            reminder_emails_sent=F("reminder_emails_sent") + 1,
            updated_at=timezone.now(),
        )
        student.refresh_from_db(fields=["reminder_emails_sent"])
    except Student.DoesNotExist:
        raise StudentNotFound(student.pk) from None
    return student.reminder_emails_sent


def check_inactivity(student_id) -> bool:
    """
    Sends a reminder when the student has no accepted submission in the last
    INACTIVITY_WINDOW_DAYS days. Returns True when a reminder was due and
    counted; rendering and delivery failures are logged, never raised.

    The reminder counter only ever grows; renewed activity leaves it as is.
    """
    try:
        student = store.get_student(student_id)
    except StudentNotFound:
        logger.warning("Inactivity check: student with ID %s not found.", student_id)
        return False

    if student.disable_email_reminders:
        logger.info("Inactivity check: email reminders disabled for %s. Skipping.", student.name)
        return False

    window_days = getattr(settings, "INACTIVITY_WINDOW_DAYS", 7)
    since = timezone.now() - timedelta(days=window_days)
    try:
        if store.has_accepted_submission_since(student.id, since):
            logger.info("%s was active in the last %s days. No reminder sent.", student.name, window_days)
            return False
        count = _increment_reminder_counter(student)
    except (StorageFailure, StudentNotFound, DatabaseError) as exc:
        logger.error("Inactivity check failed for student %s: %s", student_id, exc)
        return False

    context = {
        "student": student,
        "window_days": window_days,
        "reminder_number": count,
    }
    subject = f"Time to get back to problem solving, {student.name}!"
    try:
        text_body = render_to_string("tracker/emails/inactivity_reminder.txt", context)
        html_body = render_to_string("tracker/emails/inactivity_reminder.html", context)
    except Exception:
        logger.exception("Could not render the inactivity reminder for %s (reminder %s).", student.email, count)
    else:
        send_email(student.email, subject, text_body, html_body)

    logger.info("Inactivity reminder processed for %s. Reminder count: %s", student.name, count)
    return True
