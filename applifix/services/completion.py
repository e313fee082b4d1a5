"""Completion provider client: one stateless chat-completion call per message."""

from __future__ import annotations

import logging

import httpx

from applifix.errors import UpstreamConnectionFailed, UpstreamFailed, UpstreamRejected

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are a highly experienced and specialized assistant in diagnosing, troubleshooting, "
    "and repairing all kinds of electrical and electronic appliances and devices. This includes, "
    "but is not limited to: refrigerators, washing machines, air conditioners, vacuum cleaners, "
    "microwave ovens, TVs, mobile phones, laptops, computers, circuit boards, power supplies, and "
    "all types of household or personal electrical/electronic equipment.\n\n"
    "Your job is to provide clear, detailed, and practical advice on repairing, maintaining, and "
    "diagnosing problems in these devices. You must guide users step-by-step in identifying issues "
    "and suggest effective solutions that can be safely done by users at home or by a technician.\n\n"
    "Important: Only respond to questions related to the repair, maintenance, or troubleshooting of "
    "electrical and electronic appliances and devices. If a user asks something outside this field, "
    "kindly reply:\n"
    "\"I'm here to assist only with repair, maintenance, and troubleshooting of electrical and "
    "electronic appliances and devices.\"\n\n"
    "Make sure your answers are simple, easy to understand, and actionable, even for people "
    "without technical knowledge."
)


def build_messages(message: str) -> list[dict]:
    """System instruction plus the single user message; earlier turns are never sent."""
    return [
        {"role": "system", "content": SYSTEM_INSTRUCTION},
        {"role": "user", "content": message},
    ]


class CompletionClient:
    """Thin wrapper over an OpenAI-compatible ``/chat/completions`` endpoint.

    Calls are bounded by *timeout* and never retried: a request that timed out
    may still have produced a (billable) generation upstream.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.model = model
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    def complete(self, message: str) -> str | None:
        """Return the first choice's message text, or None if the provider sent none."""
        payload = {"model": self.model, "messages": build_messages(message)}
        try:
            resp = self._client.post("/chat/completions", json=payload)
            resp.raise_for_status()
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            logger.warning("Completion provider unreachable: %s", exc)
            raise UpstreamConnectionFailed(str(exc)) from exc
        except httpx.HTTPStatusError as exc:
            body = exc.response.text
            logger.warning("Completion provider returned %d: %s", exc.response.status_code, body[:500])
            raise UpstreamRejected(exc.response.status_code, body) from exc
        except httpx.HTTPError as exc:
            logger.error("Completion provider transport failure: %s", exc)
            raise UpstreamFailed(str(exc)) from exc

        try:
            body = resp.json()
        except ValueError as exc:
            raise UpstreamFailed(f"undecodable provider response: {exc}") from exc
        return extract_reply(body)

    def close(self) -> None:
        self._client.close()


def extract_reply(body) -> str | None:
    """Pull ``choices[0].message.content`` out of a provider response, tolerating gaps."""
    if not isinstance(body, dict):
        return None
    choices = body.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else None
