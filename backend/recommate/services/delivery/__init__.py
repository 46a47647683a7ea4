"""Letter delivery: SMTP mailer and per-destination status tracking."""

from .mailer import SmtpMailer
from .tracker import DeliveryTracker, build_cover_email, attachment_filename

__all__ = ["SmtpMailer", "DeliveryTracker", "build_cover_email", "attachment_filename"]
