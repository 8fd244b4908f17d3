# Copyright (c) 2025 Stephen Clau
#
# This file is part of IIROSE Room Plugins.
#
# IIROSE Room Plugins is dual-licensed:
#
# 1. GNU Affero General Public License v3.0 (AGPL-3.0)
#    See LICENSE file for full terms
#
# 2. Commercial License
#    For proprietary use without AGPL requirements
#    Contact: licensing@laudiversified.com
#
# SPDX-License-Identifier: AGPL-3.0-only OR Commercial

"""
Word trigger driver: maps trigger phrases to reply templates.

Trigger file format (YAML):

triggers:
  "join room public":
    - "Welcome {user}!"
  "12345 join room private": "Hi {user}, your usual seat is free."

Security features:
- Only {user} and {uid} placeholders are substituted
- Template length limit
- Max trigger count and file size limits
"""

from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
import random
import re
import structlog

import yaml

logger = structlog.get_logger()

MAX_TRIGGER_LENGTH = 200  # chars
MAX_TEMPLATE_LENGTH = 500  # chars
MAX_TRIGGERS_PER_FILE = 500
MAX_FILE_SIZE_BYTES = 1024 * 1024  # 1MB
ALLOWED_TEMPLATE_PLACEHOLDERS: Set[str] = {"user", "uid"}

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")

SendCallback = Callable[[str], Awaitable[Any]]


def _normalize(phrase: str) -> str:
    return " ".join(phrase.split()).lower()


class WordDriver:
    """Resolve trigger phrases to rendered replies."""

    def __init__(
        self,
        triggers: Optional[Dict[str, List[str]]] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize driver.

        Args:
            triggers: Trigger phrase -> list of reply templates
            rng: Random source for picking among several templates
        """
        self._rng = rng or random.Random()
        self.triggers: Dict[str, List[str]] = {}
        for phrase, templates in (triggers or {}).items():
            self.add_trigger(phrase, templates)

    def add_trigger(self, phrase: str, templates: Any) -> None:
        """
        Register reply templates for a phrase.

        Raises:
            ValueError: If the phrase or a template violates the limits
        """
        if isinstance(templates, str):
            templates = [templates]
        if not isinstance(templates, list) or not templates:
            raise ValueError(f"trigger {phrase!r} needs a template or a list of templates")

        key = _normalize(str(phrase))
        if not key:
            raise ValueError("trigger phrase cannot be empty")
        if len(key) > MAX_TRIGGER_LENGTH:
            raise ValueError(f"trigger phrase too long: {len(key)} chars (max {MAX_TRIGGER_LENGTH})")

        cleaned: List[str] = []
        for template in templates:
            template = str(template)
            if len(template) > MAX_TEMPLATE_LENGTH:
                raise ValueError(
                    f"template for {phrase!r} too long: {len(template)} chars (max {MAX_TEMPLATE_LENGTH})"
                )
            invalid = set(_PLACEHOLDER_RE.findall(template)) - ALLOWED_TEMPLATE_PLACEHOLDERS
            if invalid:
                raise ValueError(
                    f"template for {phrase!r} contains disallowed placeholders: {sorted(invalid)}. "
                    f"Only {sorted(ALLOWED_TEMPLATE_PLACEHOLDERS)} are allowed."
                )
            cleaned.append(template)

        self.triggers.setdefault(key, []).extend(cleaned)

    @classmethod
    def from_file(cls, path: Path, rng: Optional[random.Random] = None) -> "WordDriver":
        """
        Load triggers from a YAML file. A missing file yields an empty driver.

        Raises:
            ValueError: If the file is too large or malformed
            yaml.YAMLError: If the file is not valid YAML
        """
        driver = cls(rng=rng)
        path = Path(path)

        if not path.exists():
            logger.warning("word_triggers_file_not_found", path=str(path))
            return driver

        size = path.stat().st_size
        if size > MAX_FILE_SIZE_BYTES:
            raise ValueError(f"{path}: file too large ({size} bytes, max {MAX_FILE_SIZE_BYTES})")

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        triggers = data.get("triggers") if isinstance(data, dict) else None
        if triggers is None:
            triggers = {}
        if not isinstance(triggers, dict):
            raise ValueError(f"{path}: 'triggers' must be a mapping")
        if len(triggers) > MAX_TRIGGERS_PER_FILE:
            raise ValueError(
                f"{path}: too many triggers ({len(triggers)}, max {MAX_TRIGGERS_PER_FILE})"
            )

        for phrase, templates in triggers.items():
            driver.add_trigger(str(phrase), templates)

        logger.info("word_triggers_loaded", path=str(path), count=len(driver.triggers))
        return driver

    def render(self, template: str, session: Any) -> str:
        values = {
            "user": str(getattr(session, "username", "") or ""),
            "uid": str(getattr(session, "user_id", "") or ""),
        }
        return _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), template)

    def match(self, content: str) -> Optional[str]:
        """Pick one template for content, or None if nothing is registered."""
        templates = self.triggers.get(_normalize(content or ""))
        if not templates:
            return None
        return self._rng.choice(templates)

    async def start(self, session: Any, send: SendCallback) -> int:
        """
        Run the trigger matching session.content and deliver its output.

        Args:
            session: Object with content, user_id and username attributes
            send: Awaited with each non-empty rendered reply

        Returns:
            Number of replies delivered
        """
        template = self.match(getattr(session, "content", ""))
        if template is None:
            return 0

        text = self.render(template, session)
        if not text:
            return 0

        await send(text)
        logger.debug("word_trigger_fired", trigger=_normalize(session.content))
        return 1

    def __len__(self) -> int:
        return len(self.triggers)
