"""Best-effort relay of transcriptions to a Telegram chat.

WHY: The person recording usually wants to see what was heard, in the
same chat the assistant lives in. The relay is a courtesy: the upload
already succeeded, so a Telegram outage must never turn into a failed
request or an unhandled task error.

HOW: ``TelegramNotifier`` wraps one long-lived httpx.AsyncClient opened
in the app lifespan (``async with TelegramNotifier(...)``). ``notify()``
posts ``chat_id`` and ``text`` as URL-encoded form fields to
``/bot<token>/sendMessage`` and checks the ``ok`` flag of the reply.

RULES:
- Disabled (silent no-op) unless both token and chat id are set
- Every failure (transport, non-2xx, ok != true, bad JSON) is logged and
  swallowed; notify() returns False instead of raising
- The bot token never appears in log messages
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

_TIMEOUT = httpx.Timeout(15.0, connect=5.0)


class TelegramNotifier:
    """Sends transcription text through the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        api_url: str = "https://api.telegram.org",
        prefix: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._api_url = api_url.rstrip("/")
        self._prefix = prefix
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def enabled(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    async def __aenter__(self) -> TelegramNotifier:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=_TIMEOUT, transport=self._transport)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _send_url(self) -> str:
        return "{}/bot{}/sendMessage".format(self._api_url, self._bot_token)

    async def notify(self, text: str) -> bool:
        """Relay ``text``; returns True when Telegram accepted the message."""
        if not self.enabled:
            return False

        try:
            if self._client is not None:
                return await self._send(self._client, text)
            # Outside the lifespan (CLI, tests): use a throwaway client
            async with httpx.AsyncClient(timeout=_TIMEOUT, transport=self._transport) as client:
                return await self._send(client, text)
        except httpx.HTTPError as exc:
            logger.warning("Telegram notify failed: %s", type(exc).__name__)
        except Exception:
            logger.exception("Telegram notify failed unexpectedly")
        return False

    async def _send(self, client: httpx.AsyncClient, text: str) -> bool:
        resp = await client.post(
            self._send_url(),
            data={"chat_id": self._chat_id, "text": self._prefix + text},
        )
        if resp.status_code // 100 != 2:
            logger.warning("Telegram notify rejected: HTTP %d", resp.status_code)
            return False

        try:
            payload = resp.json()
        except ValueError:
            logger.warning("Telegram notify returned a non-JSON body")
            return False

        if not isinstance(payload, dict) or payload.get("ok") is not True:
            logger.warning("Telegram notify not acknowledged: %s", payload)
            return False

        logger.info("Relayed transcription to Telegram chat %s", self._chat_id)
        return True
