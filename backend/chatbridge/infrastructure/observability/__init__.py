from .langfuse_client import (
    ChatTrace,
    get_langfuse,
    start_trace,
    record_generation,
    flush_langfuse,
)
from .sink import (
    ObservabilitySink,
    ObservedEvent,
    NullSink,
    LoggingSink,
    RecordingSink,
)

__all__ = [
    "ChatTrace",
    "get_langfuse",
    "start_trace",
    "record_generation",
    "flush_langfuse",
    "ObservabilitySink",
    "ObservedEvent",
    "NullSink",
    "LoggingSink",
    "RecordingSink",
]
