"""Context management components"""

from .manager import ContextManager, NESTED_RECORDS
from .storage import SessionStorage, StorageConfig
from .validators import ContextValidator, ValidationError

__all__ = [
    'ContextManager',
    'NESTED_RECORDS',
    'SessionStorage',
    'StorageConfig',
    'ContextValidator',
    'ValidationError',
]
