"""
Mail side of the bridge: mailbox polling, submission and templates.
"""

from .bridge import MailBridge
from .render import TemplateRenderer
from .transport import Mailbox, MailSender, ImapMailbox, SmtpMailSender

__all__ = [
    "MailBridge",
    "TemplateRenderer",
    "Mailbox",
    "MailSender",
    "ImapMailbox",
    "SmtpMailSender",
]
