from .adapter import PersistenceAdapter
from .documents import InMemoryDocumentStore
from .local_storage import InMemoryKeyValueStorage, JsonFileKeyValueStorage

__all__ = [
    "PersistenceAdapter",
    "InMemoryDocumentStore",
    "InMemoryKeyValueStorage",
    "JsonFileKeyValueStorage",
]
