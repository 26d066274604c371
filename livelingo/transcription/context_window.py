"""Sliding window of recent transcript segments used as translation context."""

import logging
import re
from collections import deque
from typing import List, Optional

from ..models.transcription import TranscriptSegment, TranslationRequest

logger = logging.getLogger(__name__)

CONTEXT_SIZE = 3
MIN_SEGMENT_LENGTH = 2
SENTENCE_LENGTH_THRESHOLD = 15

SENTENCE_END = re.compile(r'[.!?]$')

PROMPT_TEMPLATE = (
    "Please translate the following {source} text to {target}. "
    "Provide only the {target} translation, no explanations:\n\n{body}"
)


class ContextWindow:
    """Bounded FIFO of recent segments that decides when to ask for a translation."""

    def __init__(self,
                 capacity: int = CONTEXT_SIZE,
                 length_threshold: int = SENTENCE_LENGTH_THRESHOLD,
                 min_segment_length: int = MIN_SEGMENT_LENGTH,
                 source_language: str = "English",
                 target_language: str = "Japanese"):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.segments = deque(maxlen=capacity)
        self.length_threshold = length_threshold
        self.min_segment_length = min_segment_length
        self.source_language = source_language
        self.target_language = target_language

    def __len__(self) -> int:
        return len(self.segments)

    def clean(self, text: Optional[str], is_final: bool = True) -> Optional[TranscriptSegment]:
        """Segment for the trimmed text, or None if it is too short to keep."""
        cleaned = (text or '').strip()
        if len(cleaned) < self.min_segment_length:
            return None
        return TranscriptSegment(text=cleaned, is_final=is_final)

    def push(self, segment: TranscriptSegment) -> None:
        """Append a segment, evicting the oldest past capacity."""
        self.segments.append(segment)

    def should_translate(self, text: str) -> bool:
        """True for text ending a sentence or longer than the length threshold."""
        cleaned = text.strip()
        return bool(SENTENCE_END.search(cleaned)) or len(cleaned) > self.length_threshold

    def build_request(self, text: str) -> TranslationRequest:
        """Build a prompt for ``text`` using the older window entries as context."""
        context = self.get_segments()[:-1]
        if context:
            body = (f"Previous context: {' '.join(context)}\n\n"
                    f"Current text to translate: {text}")
        else:
            body = text
        prompt = PROMPT_TEMPLATE.format(source=self.source_language,
                                        target=self.target_language,
                                        body=body)
        return TranslationRequest(prompt=prompt, segment=text, context=context)

    def process(self, text: Optional[str], is_final: bool = True) -> Optional[TranslationRequest]:
        """Push a transcript fragment and return a translation request if one is due."""
        segment = self.clean(text, is_final)
        if segment is None:
            logger.debug(f"Discarding short transcript segment: {text!r}")
            return None

        self.push(segment)
        if not self.should_translate(segment.text):
            return None

        logger.debug(f"Translation due for segment ({len(self.segments)} in window)")
        return self.build_request(segment.text)

    def get_segments(self) -> List[str]:
        """Texts currently in the window, oldest first."""
        return [segment.text for segment in self.segments]

    def get_transcript_segments(self) -> List[TranscriptSegment]:
        return list(self.segments)

    def clear(self) -> None:
        self.segments.clear()
