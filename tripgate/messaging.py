"""Outbound messaging gateway for one-time codes.

Delivery is fire-and-forget: code issuance succeeds once the code is stored,
and delivery failures are logged and audited but never reach the caller.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from tripgate.logging_config import mask_phone

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundMessage:
    """A message to deliver to a participant's phone.

    Attributes:
        to: Destination phone number (E.164)
        body: Message text
        participant_id: Participant the message concerns (for audit)
    """

    to: str
    body: str
    participant_id: str

    def __repr__(self) -> str:
        # Body carries the code; keep it out of reprs and logs
        return f"OutboundMessage(to={mask_phone(self.to)!r}, participant_id={self.participant_id!r})"


class MessagingError(Exception):
    """Message could not be handed to the gateway."""

    pass


class MessagingGateway(ABC):
    """Abstract outbound SMS gateway."""

    @abstractmethod
    async def send(self, message: OutboundMessage) -> None:
        """Hand a message to the gateway.

        Raises:
            MessagingError: If the gateway rejected or could not be reached
        """
        ...


class LogOnlyGateway(MessagingGateway):
    """Development gateway: logs that a message would be sent."""

    async def send(self, message: OutboundMessage) -> None:
        log.info(
            f"SMS gateway not configured; dropping message to {mask_phone(message.to)} "
            f"for participant {message.participant_id}"
        )


class HttpSmsGateway(MessagingGateway):
    """SMS gateway reached over a form-encoded HTTP API with basic auth."""

    def __init__(
        self,
        url: str,
        account_id: str | None,
        auth_token: str | None,
        sender: str,
        timeout: float = 10.0,
    ):
        self._url = url
        self._auth = (account_id, auth_token) if account_id and auth_token else None
        self._sender = sender
        self._timeout = timeout

    async def send(self, message: OutboundMessage) -> None:
        data = {"To": message.to, "From": self._sender, "Body": message.body}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, data=data, auth=self._auth)
        except httpx.RequestError as e:
            raise MessagingError(f"SMS gateway request failed: {e}") from e

        if response.status_code >= 300:
            raise MessagingError(f"SMS gateway rejected message: {response.status_code}")

        log.info(f"SMS handed to gateway for {mask_phone(message.to)}")


async def deliver_message(message: OutboundMessage) -> bool:
    """Deliver a message in its own failure domain.

    Intended to run as a background task after the response is sent.

    Returns:
        True if the gateway accepted the message
    """
    from tripgate.audit import get_audit_logger

    audit = get_audit_logger()
    try:
        await get_messaging_gateway().send(message)
    except MessagingError as e:
        log.error(f"Code delivery failed for participant {message.participant_id}: {e}")
        audit.log_access(
            action="message.delivery",
            principal_id="system",
            resource=f"participant:{message.participant_id}",
            status="error",
            details={"reason": str(e)},
        )
        return False

    audit.log_access(
        action="message.delivery",
        principal_id="system",
        resource=f"participant:{message.participant_id}",
    )
    return True


# =============================================================================
# GLOBAL SINGLETON
# =============================================================================

_gateway: MessagingGateway | None = None


def get_messaging_gateway() -> MessagingGateway:
    """Get the global messaging gateway, built from config on first use."""
    global _gateway

    if _gateway is None:
        from tripgate.config import (
            SMS_ACCOUNT_ID,
            SMS_AUTH_TOKEN,
            SMS_FROM,
            SMS_GATEWAY_URL,
            SMS_TIMEOUT_SECONDS,
        )

        if SMS_GATEWAY_URL:
            _gateway = HttpSmsGateway(
                url=SMS_GATEWAY_URL,
                account_id=SMS_ACCOUNT_ID,
                auth_token=SMS_AUTH_TOKEN,
                sender=SMS_FROM,
                timeout=SMS_TIMEOUT_SECONDS,
            )
            log.info("Initialized HTTP SMS gateway")
        else:
            _gateway = LogOnlyGateway()
            log.warning("TRIPGATE_SMS_GATEWAY_URL not set: codes will not be delivered")

    return _gateway


def set_messaging_gateway(gateway: MessagingGateway) -> None:
    """Replace the global gateway (for testing)."""
    global _gateway
    _gateway = gateway


def reset_messaging_gateway() -> None:
    """Reset the global gateway (for testing)."""
    global _gateway
    _gateway = None
