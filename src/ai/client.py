"""Claude API client wrapper used by the planning collaborator."""

from __future__ import annotations

import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Optional

import anthropic

logger = logging.getLogger(__name__)

# Configurable debug directory, set by the orchestrator at startup
_debug_dir: Path | None = None

_FENCE_RE = re.compile(r"^```(?:json|javascript|)?\s*\n(.*?)\n```\s*$", re.DOTALL | re.MULTILINE)


def set_debug_dir(path: Path) -> None:
    """Set the directory AI exchanges and parse failures are dumped to."""
    global _debug_dir
    _debug_dir = path
    _debug_dir.mkdir(parents=True, exist_ok=True)


def _get_debug_dir() -> Path:
    global _debug_dir
    if _debug_dir is None:
        _debug_dir = Path("./runs") / "debug"
    _debug_dir.mkdir(parents=True, exist_ok=True)
    return _debug_dir


def ai_available() -> bool:
    """True when an Anthropic API key is configured."""
    return bool(os.environ.get("ANTHROPIC_API_KEY"))


class AIClient:
    """Async wrapper around the Anthropic Claude API."""

    def __init__(self, model: str = "claude-sonnet-4-20250514", max_tokens: int = 4000):
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise EnvironmentError(
                "ANTHROPIC_API_KEY environment variable is not set. "
                "Please set it before enabling AI planning."
            )
        self.client = anthropic.AsyncAnthropic(api_key=api_key, timeout=300.0)
        self.model = model
        self.max_tokens = max_tokens
        self._call_count = 0

    @property
    def call_count(self) -> int:
        return self._call_count

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None,
        temperature: float = 0.3,
    ) -> str:
        """Send a completion request to Claude and return the text response."""
        self._call_count += 1
        tokens = max_tokens or self.max_tokens
        logger.info("Calling AI (call #%d, model=%s, max_tokens=%d)...",
                    self._call_count, self.model, tokens)
        logger.debug("AI prompt length: system=%d chars, user=%d chars",
                     len(system_prompt), len(user_message))

        try:
            call_start = time.time()
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_message}],
            )
            text = response.content[0].text
            logger.info("AI response received in %.1fs (%d chars)",
                        time.time() - call_start, len(text))
            if response.stop_reason == "max_tokens":
                logger.warning("AI response was truncated at max_tokens=%d; JSON may be incomplete",
                               tokens)
            self._save_exchange_log(self._call_count, system_prompt, user_message, text, None)
            return text
        except anthropic.APIError as e:
            logger.error("Claude API error: %s", e)
            self._save_exchange_log(self._call_count, system_prompt, user_message, "", str(e))
            raise

    async def complete_json(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None,
        temperature: float = 0.2,
    ) -> dict[str, Any]:
        """Send a completion request and parse the response as a JSON object."""
        text = await self.complete(system_prompt, user_message, max_tokens, temperature)
        return self._parse_json_response(text, self._call_count)

    # ------------------------------------------------------------------
    # JSON parsing with LLM quirk handling
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_json_response(text: str, call_number: int = 0) -> dict[str, Any]:
        """Parse an AI response as a JSON object. Raises ValueError when it is not one."""
        original = text
        text = text.strip()
        fenced = _FENCE_RE.search(text)
        if fenced:
            text = fenced.group(1).strip()
            logger.debug("Stripped markdown code fences from AI response")
        elif text.startswith("```"):
            text = text.strip("`").strip()
            if text.lower().startswith("json"):
                text = text[4:].strip()

        try:
            data = json.loads(text, strict=False)
        except json.JSONDecodeError:
            cleaned = _repair_json(text)
            try:
                data = json.loads(cleaned, strict=False)
            except json.JSONDecodeError as e:
                logger.error("Failed to parse AI response as JSON: %s", e)
                AIClient._save_parse_failure(call_number, original, str(e), cleaned)
                raise ValueError(f"AI returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"AI returned JSON {type(data).__name__}, expected an object")
        return data

    # ------------------------------------------------------------------
    # Debug logging
    # ------------------------------------------------------------------

    @staticmethod
    def _save_exchange_log(
        call_number: int,
        system_prompt: str,
        user_message: str,
        response_text: str,
        error: str | None,
    ) -> None:
        """Save the full AI exchange (prompt + response) to a log file."""
        try:
            ts = time.strftime("%Y%m%d_%H%M%S")
            log_file = _get_debug_dir() / f"ai_call_{ts}_{call_number:03d}.log"
            with open(log_file, "w", encoding="utf-8") as f:
                f.write(f"=== AI CALL #{call_number} at {time.strftime('%Y-%m-%d %H:%M:%S')} ===\n\n")
                f.write(f"=== SYSTEM PROMPT ({len(system_prompt)} chars) ===\n{system_prompt}")
                f.write(f"\n\n=== USER MESSAGE ({len(user_message)} chars) ===\n{user_message}")
                f.write(f"\n\n=== RESPONSE ({len(response_text)} chars) ===\n")
                f.write(response_text or "(empty)")
                if error:
                    f.write(f"\n\n=== ERROR ===\n{error}\n")
            logger.debug("AI exchange logged to %s", log_file)
        except Exception as log_err:
            logger.debug("Failed to save AI exchange log: %s", log_err)

    @staticmethod
    def _save_parse_failure(call_number: int, raw_response: str, error: str, cleaned: str) -> None:
        """Save the raw and cleaned response of a failed parse."""
        try:
            ts = time.strftime("%Y%m%d_%H%M%S")
            fail_file = _get_debug_dir() / f"parse_failure_{ts}_{call_number:03d}.log"
            with open(fail_file, "w", encoding="utf-8") as f:
                f.write(f"=== JSON PARSE FAILURE (call #{call_number}) ===\n\nError: {error}\n\n")
                f.write(f"=== CLEANED TEXT ({len(cleaned)} chars) ===\n{cleaned}\n\n")
                f.write(f"=== FULL RAW RESPONSE ({len(raw_response)} chars) ===\n{raw_response}")
            logger.error("JSON parse failure details saved to %s", fail_file)
        except Exception as log_err:
            logger.error("Failed to save parse failure log: %s", log_err)
            logger.error("Raw response (first 2000 chars):\n%s", raw_response[:2000])


def _repair_json(text: str) -> str:
    """Remove // comments and trailing commas, escape control chars, trim to the outer object."""
    cleaned = re.sub(r"(?<=[\s,\]\}])//[^\n]*", "", text)
    cleaned = re.sub(r"^//[^\n]*", "", cleaned, flags=re.MULTILINE)
    cleaned = re.sub(r",\s*([}\]])", r"\1", cleaned)
    cleaned = "".join(
        f"\\u{ord(ch):04x}" if ord(ch) < 0x20 and ch not in ("\n", "\r", "\t") else ch
        for ch in cleaned
    )
    first, last = cleaned.find("{"), cleaned.rfind("}")
    if first != -1 and last > first:
        cleaned = cleaned[first:last + 1]
    return cleaned
