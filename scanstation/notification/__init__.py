"""Result notifications: templates, SMTP transport and dispatcher."""

from scanstation.notification.dispatcher import NotificationDispatcher
from scanstation.notification.mailer import Mailer
from scanstation.notification.template import (
    EmailMessage,
    render_dependency_scan,
    render_sonar_analysis,
    repository_display_name,
)

__all__ = [
    "EmailMessage",
    "Mailer",
    "NotificationDispatcher",
    "render_dependency_scan",
    "render_sonar_analysis",
    "repository_display_name",
]
