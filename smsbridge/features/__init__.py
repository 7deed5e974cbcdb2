"""
Feature managers for modem functionality.

- SMSManager: send, read and delete SMS in text mode
"""

from .sms import SMSManager, SendStateMachine

__all__ = [
    "SMSManager",
    "SendStateMachine",
]
