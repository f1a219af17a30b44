"""Sample handler that sends a notification through a pluggable sender."""

import random
import time
from typing import Callable, Optional

from ..core.logging_ import get_logger
from ..tasks import TaskContext, TaskExecutionError, TaskHandler, TaskResult

logger = get_logger(__name__)

NOTIFICATION_ERROR = "NOTIFICATION_ERROR"
CHANNELS = ("EMAIL", "SMS", "PUSH")

Sender = Callable[[str, str, str], bool]


def simulated_sender(delay: float = 0.5, success_rate: float = 0.95) -> Sender:
    """Build a sender that sleeps for ``delay`` seconds and succeeds at ``success_rate``."""

    def send(recipient: str, message: str, channel: str) -> bool:
        logger.info(f"Sending {channel} notification to {recipient}: {message}")
        time.sleep(delay)
        return random.random() < success_rate

    return send


def _is_blank(value) -> bool:
    return not isinstance(value, str) or not value.strip()


class NotificationHandler(TaskHandler):
    """Delivers ``message`` to ``recipient`` over an EMAIL, SMS or PUSH channel."""

    task_type = "NOTIFICATION"
    version = "1.0.0"
    description = "Sends notifications via email, SMS, or push notification"

    def __init__(self, sender: Optional[Sender] = None):
        self.sender = sender or simulated_sender()

    def validate(self, context: TaskContext) -> bool:
        if _is_blank(context.get_input("recipient")):
            self.logger.warning("Validation failed: 'recipient' field is required")
            return False

        if _is_blank(context.get_input("message")):
            self.logger.warning("Validation failed: 'message' field is required")
            return False

        if context.get_input("type") not in CHANNELS:
            self.logger.warning("Validation failed: 'type' must be EMAIL, SMS, or PUSH")
            return False

        return True

    def execute(self, context: TaskContext) -> TaskResult:
        recipient = context.get_input("recipient")
        message = context.get_input("message")
        channel = context.get_input("type")

        try:
            delivered = self.sender(recipient, message, channel)
        except Exception as e:
            raise TaskExecutionError(
                f"Notification sending failed: {e}",
                NOTIFICATION_ERROR,
                self.task_type,
                context.execution_id,
            ) from e

        if not delivered:
            raise TaskExecutionError(
                "Notification sending failed: sender reported failure",
                NOTIFICATION_ERROR,
                self.task_type,
                context.execution_id,
            )

        return TaskResult.success(
            context.execution_id,
            {
                "recipient": recipient,
                "notificationType": channel,
                "sentAt": int(time.time() * 1000),
            },
            message="Notification sent successfully",
        )

    def supports_async(self) -> bool:
        return True

    def estimated_duration_ms(self) -> int:
        return 2000

    def before_execution(self, context: TaskContext) -> None:
        context.set_variable("notification_channel", context.get_input("type"))

    def after_execution(self, context: TaskContext, result: TaskResult) -> None:
        self.logger.debug(f"Notification sent via {context.get_variable('notification_channel')} channel")
