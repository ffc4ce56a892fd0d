"""
Turns terminal document signals into user-facing notifications.
"""

from collections.abc import Callable
from typing import Any, Protocol

from enrollbot.config.logging import get_logger
from enrollbot.config.settings import Settings
from enrollbot.v1.infra.queue.models import DocumentStatus
from enrollbot.v1.infra.queue.pacing import Pacer
from enrollbot.v1.infra.queue.schemas import DocumentResult, JobOutcome, Notification
from enrollbot.v1.infra.queue.store import QueueStore

logger = get_logger(__name__)

ChannelResolver = Callable[[str], Any]

UNKNOWN_ERROR = "Unknown error"


class DeliveryChannel(Protocol):
    """Chat handle exposed by the messaging session."""

    async def send_state_typing(self) -> Any: ...

    async def send_message(self, text: str) -> Any: ...


def _bullets(outcomes: list[JobOutcome], with_reason: bool = False) -> str:
    lines = []
    for outcome in outcomes:
        if with_reason:
            lines.append(f"- {outcome.label}: {outcome.detail or UNKNOWN_ERROR}")
        else:
            lines.append(f"- {outcome.label}")
    return "\n".join(lines)


def render_summary(result: DocumentResult) -> str:
    """Render the enrollment summary sent to the document owner."""
    successes = result.successes
    failures = result.failures

    if result.status == DocumentStatus.FAILED:
        message = "❌ Enrollment incomplete\n\n"
        message += f"Tried {len(result.results)} group(s).\n"
    else:
        message = "✅ Enrollment processed\n\n"
        message += f"Groups attempted: {len(result.results)}\n"

    message += f"✅ Added: {len(successes)}\n"
    message += f"❌ Failed: {len(failures)}\n\n"

    if successes:
        message += "Groups added:\n" + _bullets(successes) + "\n\n"

    if failures:
        message += "Could not add:\n" + _bullets(failures, with_reason=True) + "\n\n"
        if result.status == DocumentStatus.FAILED:
            message += (
                "Please try again later or contact the administrator "
                "if the problem persists."
            )
        else:
            message += 'If you need help, reply "HELP" or contact the administrator.'

    return message.rstrip("\n")


class DocumentNotifier:
    """
    Consumer of the aggregator's terminal callbacks.

    Renders a summary and enqueues it for the document owner. Failing to
    resolve the owner's chat is logged and the notification is skipped.
    """

    def __init__(self, store: QueueStore, resolve_channel: ChannelResolver | None = None):
        self.store = store
        self.resolve_channel = resolve_channel

    def on_document_completed(self, result: DocumentResult) -> None:
        self._notify(result)

    def on_document_failed(self, result: DocumentResult) -> None:
        self._notify(result)

    def _notify(self, result: DocumentResult) -> None:
        if not result.owner_id:
            logger.warning(
                "Document has no owner, summary not sent",
                document_id=result.document_id,
            )
            return

        try:
            channel = self.resolve_channel(result.owner_id) if self.resolve_channel else None
        except Exception as e:
            logger.warning(
                "Failed to get chat for notification",
                owner_id=result.owner_id,
                document_id=result.document_id,
                error=str(e),
            )
            return

        self.store.enqueue_notification(
            Notification(
                target_id=result.owner_id,
                message=render_summary(result),
                channel=channel,
            )
        )

        log = logger.warning if result.status == DocumentStatus.FAILED else logger.info
        log(
            "Document summary notification queued",
            document_id=result.document_id,
            owner_id=result.owner_id,
            status=result.status.value,
            success_count=len(result.successes),
            failed_count=result.failed_count,
        )


class HumanizedSender:
    """
    Send function for the notification worker that behaves like a person:
    an initial pause, a typing indicator sized to the message, then the send.
    """

    def __init__(self, settings: Settings, pacer: Pacer | None = None):
        self.settings = settings
        self.pacer = pacer or Pacer()

    async def __call__(self, notification: Notification) -> Any:
        channel: DeliveryChannel | None = notification.channel
        if channel is None:
            raise ValueError(f"No delivery channel for {notification.target_id}")

        await self.pacer.pause(self.settings.delay_initial_response_ms)

        try:
            await channel.send_state_typing()
            await self.pacer.pause(self.pacer.typing_duration_ms(notification.message))
        except Exception as e:
            # Typing indicator is cosmetic
            logger.warning("Error simulating typing", error=str(e))

        sent = await channel.send_message(notification.message)
        logger.info(
            "Human-like message sent",
            target_id=notification.target_id,
            message_length=len(notification.message),
        )
        return sent
