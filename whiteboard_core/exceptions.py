"""
Whiteboard-specific exceptions for the graph authoring core.
"""

from typing import Optional, Any, Dict


class WhiteboardError(Exception):
    """Base exception for all whiteboard errors."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(WhiteboardError):
    """Raised when an operation references an id absent from the graph."""
    
    def __init__(self, kind: str, item_id: str):
        super().__init__(f"{kind} not found: {item_id}", {'kind': kind, 'id': item_id})
        self.kind = kind
        self.item_id = item_id


class MalformedDocumentError(WhiteboardError):
    """Raised when a stored document cannot be decoded at all."""
    
    def __init__(self, message: str, storage_key: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.storage_key = storage_key


class InvariantViolation(WhiteboardError):
    """Raised when a graph operation would leave the graph ill-formed."""
    
    def __init__(self, message: str, violations: Optional[list] = None):
        super().__init__(message, {'violations': violations or []})
        self.violations = violations or []


class StorageError(WhiteboardError):
    """Raised when a storage slot backend fails to read or write."""
    
    def __init__(self, message: str, backend: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.backend = backend
