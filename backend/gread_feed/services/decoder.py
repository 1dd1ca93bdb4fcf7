"""
Tolerant decoding of activity feed pages.

Each raw record is decoded on its own so one malformed entry never costs
the rest of its page. Threaded payloads that embed replies under a
"children" key are flattened, parent first, into the page order.
"""

import logging
from typing import Any, Dict, Iterator, List

from pydantic import ValidationError

from gread_feed.core.errors import RecordDecodeError
from gread_feed.schemas.activity import ActivityRecord

logger = logging.getLogger(__name__)


def decode_activity(raw: Dict[str, Any]) -> ActivityRecord:
    """
    Decode one raw activity object.

    Args:
        raw: JSON object as parsed from the backend

    Returns:
        ActivityRecord with empty children

    Raises:
        RecordDecodeError: If `raw` is not an object or its id cannot be
            read as an integer (directly or from a numeric string)
    """
    if not isinstance(raw, dict):
        raise RecordDecodeError(
            f"Activity payload must be an object, got {type(raw).__name__}"
        )

    payload = {key: value for key, value in raw.items() if key != "children"}

    try:
        return ActivityRecord.model_validate(payload)
    except ValidationError as e:
        raise RecordDecodeError(
            f"Activity has no usable id: {e.errors()[0]['msg']}",
            raw_id=raw.get("id"),
        ) from e


def _flatten(raw_records: List[Any]) -> Iterator[Any]:
    for raw in raw_records:
        yield raw
        if isinstance(raw, dict) and isinstance(raw.get("children"), list):
            yield from _flatten(raw["children"])


def decode_page(raw_records: List[Any]) -> List[ActivityRecord]:
    """
    Decode a page of raw activities, dropping the ones that fail.

    Records keep server order; embedded children follow their parent.
    Dropped records are logged at WARNING and never raised.

    Args:
        raw_records: Activity objects as returned by the feed endpoint

    Returns:
        Decoded records (duplicates within the page are not removed here)
    """
    records: List[ActivityRecord] = []
    dropped = 0

    for raw in _flatten(raw_records):
        try:
            records.append(decode_activity(raw))
        except RecordDecodeError as e:
            dropped += 1
            logger.warning(f"Dropping malformed activity (id={e.raw_id!r}): {e}")

    if dropped:
        logger.info(f"Decoded {len(records)} activities, dropped {dropped}")

    return records
