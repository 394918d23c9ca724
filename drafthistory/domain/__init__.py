from .serialization import TimelineJSONEncoder, dumps, timeline_export_payload

__all__ = ['TimelineJSONEncoder', 'dumps', 'timeline_export_payload']
