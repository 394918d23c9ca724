import base64
import json
from dataclasses import asdict, is_dataclass
from datetime import datetime, date
from enum import Enum
from typing import Any

from ..contracts.timeline import TimelineData, TimelineStats


class TimelineJSONEncoder(json.JSONEncoder):
    """
    JSON Encoder for timeline exports.

    RULES:
    1. Dates MUST be ISO 8601 strings.
    2. Enums MUST use their .value.
    3. Bytes are base64 strings (state blobs stay opaque).
    4. Sets -> Lists (sorted for determinism).
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (bytes, bytearray)):
            return base64.b64encode(bytes(obj)).decode('ascii')
        if isinstance(obj, (set, frozenset)):
            return sorted(list(obj))
        if hasattr(obj, "to_dict"):
            return obj.to_dict()
        if is_dataclass(obj) and not isinstance(obj, type):
            return asdict(obj)

        return super().default(obj)


def timeline_export_payload(timeline: TimelineData, stats: TimelineStats, export_time: int) -> dict:
    """{timeline, stats, export_time} as plain JSON-ready data."""
    return json.loads(dumps({
        'timeline': timeline,
        'stats': stats,
        'export_time': export_time,
    }))


def dumps(obj: Any, **kwargs: Any) -> str:
    kwargs.setdefault('indent', 2)
    return json.dumps(obj, cls=TimelineJSONEncoder, **kwargs)
