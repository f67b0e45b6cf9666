from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable

from orderdesk.core.access import FULFILLMENT_ROLES, OperatorContext, require_role
from orderdesk.core.conversations import ConversationStore, Increment
from orderdesk.core.media import ImageUploader
from orderdesk.core.normalize import SENDER_ADMIN, ConversationSummary, Message, utc_now

IMAGE_PREVIEW = "📷 Image"


class ChatService:
    """Operator-authored chat writes: free text, images and housekeeping flags."""

    def __init__(
        self,
        conversations: ConversationStore,
        logger: logging.Logger | logging.LoggerAdapter,
        uploader: ImageUploader | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.conversations = conversations
        self.logger = logger
        self.uploader = uploader
        self.clock = clock

    def _send(self, customer_id: str, *, text: str | None, image_ref: str | None, preview: str) -> Message:
        now = self.clock()
        message, _ = self.conversations.append_with_summary(
            customer_id,
            Message(
                id="",
                customer_id=customer_id,
                sender_role=SENDER_ADMIN,
                timestamp=now,
                text=text,
                image_ref=image_ref,
            ),
            {
                "last_message": preview,
                "timestamp": now,
                "unread_by_admin": 0,
                "unread_by_user": Increment(1),
            },
        )
        return message

    def send_admin_message(self, customer_id: str, text: str, operator: OperatorContext) -> Message:
        require_role(operator, FULFILLMENT_ROLES, "send chat messages")
        if not text or not text.strip():
            raise ValueError("Message text is empty")
        message = self._send(customer_id, text=text, image_ref=None, preview=text)
        self.logger.info("Message %s sent to %s", message.id, customer_id)
        return message

    def send_admin_image(
        self,
        customer_id: str,
        operator: OperatorContext,
        *,
        image_ref: str | None = None,
        image_path: Path | None = None,
    ) -> Message:
        require_role(operator, FULFILLMENT_ROLES, "send chat messages")
        if image_ref is None:
            if image_path is None:
                raise ValueError("Either image_ref or image_path is required")
            if self.uploader is None:
                raise ValueError("No image uploader configured")
            image_ref = self.uploader.upload(image_path)
            self.logger.info("Uploaded %s as %s", image_path.name, image_ref)
        message = self._send(customer_id, text=None, image_ref=image_ref, preview=IMAGE_PREVIEW)
        self.logger.info("Image message %s sent to %s", message.id, customer_id)
        return message

    def mark_read(self, customer_id: str, operator: OperatorContext) -> ConversationSummary:
        require_role(operator, FULFILLMENT_ROLES, "read conversations")
        return self.conversations.mark_read(customer_id, SENDER_ADMIN)

    def clear_new_order_flag(self, customer_id: str, operator: OperatorContext) -> ConversationSummary:
        require_role(operator, FULFILLMENT_ROLES, "update conversations")
        summary = self.conversations.clear_new_order_flag(customer_id)
        self.logger.info("New-order flag cleared for %s", customer_id)
        return summary

    def mark_order_processed(self, customer_id: str, message_id: str, operator: OperatorContext) -> Message:
        require_role(operator, FULFILLMENT_ROLES, "update conversations")
        message = self.conversations.mark_order_processed(customer_id, message_id)
        self.logger.info("Order message %s marked as processed", message_id)
        return message
