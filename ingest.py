"""Split one recognizer event into final texts and the latest interim text."""

from __future__ import annotations

import logging

from models import IngestResult, RecognitionEvent

logger = logging.getLogger(__name__)


def _as_index(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return max(value, 0)


def ingest_event(event: RecognitionEvent, consumed_through: int = -1) -> IngestResult:
    """Classify ``event.results[event.result_index:]``.

    Indices are absolute: ``results[i]`` is segment ``event.base_index + i``
    of the recognizer session. Final segments at or below ``consumed_through``
    were already reconciled and are skipped. Segments with blank or
    non-string text, or without a boolean ``is_final``, are skipped. A
    ``results`` value that is not a list counts as empty. Only the last
    interim segment survives; earlier ones in the same range are superseded.
    """
    result = IngestResult()
    results = getattr(event, "results", None)
    if not isinstance(results, list):
        logger.debug("ignoring event without a result list: %r", results)
        return result
    base = _as_index(getattr(event, "base_index", 0))
    start = _as_index(getattr(event, "result_index", 0))
    for offset in range(start, len(results)):
        segment = results[offset]
        text = getattr(segment, "text", None)
        is_final = getattr(segment, "is_final", None)
        if not isinstance(text, str) or not isinstance(is_final, bool):
            continue
        text = text.strip()
        if not text:
            continue
        if is_final:
            index = base + offset
            if index <= consumed_through:
                continue
            result.final_segments.append((index, text))
            result.has_final_result = True
        else:
            result.interim_text = text
            result.has_interim_result = True
    return result
