# modules/__init__.py
from .memory_manager import MemoryManager
from .notifier import Notifier
