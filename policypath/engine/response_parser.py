"""
Response Channel Parser - splits mentor output into visible text and the
hidden vault block.

Grammar (tolerant; the mentor's formatting is not guaranteed):

    raw      := visible [START hidden [END trailing]]
    hidden   := ... "Topic:" title NEWLINE ... "Summary:" notes

A missing END marker means the hidden block runs to the end of the text.
Missing or blank labels fall back to configured defaults. Parsing never fails.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from ..config import config
from ..models import VaultPayload

_LOGGER = logging.getLogger(__name__)

TOPIC_PATTERN = re.compile(r"Topic:[ \t]*(?P<title>[^\r\n]*)", re.IGNORECASE)
SUMMARY_PATTERN = re.compile(r"Summary:\s*(?P<notes>.*)", re.IGNORECASE | re.DOTALL)
EMPHASIS_PATTERN = re.compile(r"[*_`~]")


@dataclass(frozen=True)
class ParsedResponse:
    """
    Mentor output split into channels.

    Attributes:
        visible: Text to show the learner
        hidden: Vault payload, or None when the reply carried no hidden block
    """
    visible: str
    hidden: Optional[VaultPayload] = None


class ResponseChannelParser:
    """Best-effort scanner for the sentinel-delimited hidden channel."""

    def __init__(
        self,
        start_marker: Optional[str] = None,
        end_marker: Optional[str] = None,
        default_title: Optional[str] = None,
        default_notes: Optional[str] = None,
    ):
        conv = config.conversation
        self.start_marker = start_marker or conv.vault_start_marker
        self.end_marker = end_marker or conv.vault_end_marker
        self.default_title = default_title or conv.default_title
        self.default_notes = default_notes or conv.default_notes

    def parse(self, raw: str) -> ParsedResponse:
        """
        Split a raw mentor reply.

        Args:
            raw: Mentor answer text

        Returns:
            ParsedResponse with visible text and optional hidden payload
        """
        raw = raw or ""
        start = raw.find(self.start_marker)
        if start == -1:
            return ParsedResponse(visible=raw.strip())

        visible = raw[:start].strip()
        segment_start = start + len(self.start_marker)
        end = raw.find(self.end_marker, segment_start)
        if end == -1:
            _LOGGER.debug("Hidden channel has no end marker; using remainder of reply")
            segment = raw[segment_start:]
        else:
            segment = raw[segment_start:end]

        return ParsedResponse(visible=visible, hidden=self._parse_segment(segment))

    def _parse_segment(self, segment: str) -> VaultPayload:
        title = self._extract(TOPIC_PATTERN, "title", segment)
        notes = self._extract(SUMMARY_PATTERN, "notes", segment)

        if not title:
            _LOGGER.debug("Hidden channel missing Topic label; using default title")
            title = self.default_title
        if not notes:
            _LOGGER.debug("Hidden channel missing Summary label; using default notes")
            notes = self.default_notes

        return VaultPayload(title=title, notes=notes)

    @staticmethod
    def _extract(pattern: re.Pattern, group: str, segment: str) -> str:
        match = pattern.search(segment)
        if not match:
            return ""
        return strip_emphasis(match.group(group))


def strip_emphasis(text: str) -> str:
    """Remove markdown emphasis characters and surrounding whitespace."""
    return EMPHASIS_PATTERN.sub("", text).strip()
