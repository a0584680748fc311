from .collectors import CandidateRecord, RecordStream, SourceSpec, make_collector
from .storage import ProxyStore, StorageError

__all__ = [
    "CandidateRecord",
    "ProxyStore",
    "RecordStream",
    "SourceSpec",
    "StorageError",
    "make_collector",
]

__version__ = "0.1.0"
