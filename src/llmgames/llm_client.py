from __future__ import annotations
"""
Oracle client facade over an OpenAI-compatible chat-completions endpoint.

The rest of the code should not care which SDK is in use. The registry and
sessions only see OracleClient.send_prompt(text) -> text; failures raise
OracleError (or ProtocolError on timeout), never a partial string.
"""
from typing import Optional
import logging
import random
import time

import openai
from openai import OpenAI

from .config import SETTINGS, Settings
from .errors import OracleError, ProtocolError

log = logging.getLogger("llm_client")

SYSTEM = (
    "You are a meticulous chess arbiter and player. Follow the requested reply "
    "format exactly, one LABEL: value per line, with no extra commentary."
)


class OracleClient:
    """Blocking prompt → completion transport with bounded transport retries."""

    def __init__(
        self,
        model: Optional[str] = None,
        settings: Settings = SETTINGS,
        client: Optional[OpenAI] = None,
        system: str = SYSTEM,
    ):
        self.settings = settings
        self.model = model or settings.model
        self.system = system
        if not self.model:
            raise ValueError("Model is required; set LLMGAMES_MODEL or pass model=...")
        self._client = client or OpenAI(
            api_key=settings.llm_api_key or None,
            base_url=settings.api_base or None,
            # retries and backoff happen in send_prompt
            max_retries=0,
        )

    def send_prompt(self, prompt_text: str) -> str:
        messages = [
            {"role": "system", "content": self.system},
            {"role": "user", "content": prompt_text},
        ]
        delay = 0.5
        retries = max(0, self.settings.oracle_retries)
        for attempt in range(retries + 1):
            try:
                rsp = self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    timeout=self.settings.oracle_timeout_s,
                )
            except openai.APITimeoutError as e:
                log.warning("Oracle request timed out after %.1fs", self.settings.oracle_timeout_s)
                raise ProtocolError(f"oracle timed out after {self.settings.oracle_timeout_s:.0f}s") from e
            except openai.OpenAIError as e:
                if attempt >= retries:
                    log.exception("Oracle request failed after %d attempts", attempt + 1)
                    raise OracleError(f"oracle request failed: {e}") from e
                sleep_s = delay * (2 ** attempt) * (0.8 + 0.4 * random.random())
                log.debug("Oracle request failed (attempt %d), retrying in %.2fs", attempt + 1, sleep_s)
                time.sleep(min(sleep_s, 10.0))
                continue
            text = _extract_text(rsp)
            if not text:
                raise OracleError("oracle returned an empty completion")
            return text.strip()
        raise OracleError("oracle request failed")


def _extract_text(rsp) -> str:
    if not getattr(rsp, "choices", None):
        return ""
    msg = rsp.choices[0].message
    content = getattr(msg, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for c in content:
            if isinstance(c, dict):
                if c.get("type") == "text" and isinstance(c.get("text"), str):
                    parts.append(c["text"])
                continue
            t = getattr(c, "text", None)
            if isinstance(t, str):
                parts.append(t)
        return "\n".join(parts)
    return ""
