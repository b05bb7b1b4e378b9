"""
Custom exception classes for the Jupiter trade indexer.

Provides typed exceptions for better error handling and debugging.
"""

class IndexerException(Exception):
    """Base exception for all indexer errors."""
    
    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context
    
    def __str__(self):
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


class InstructionDecodeError(IndexerException):
    """Raised when an instruction payload or account list is malformed."""
    pass


class ConfigurationException(IndexerException):
    """Raised when configuration is invalid."""
    pass


class RpcException(IndexerException):
    """Raised when block fetching over JSON-RPC fails."""
    pass


class StorageException(IndexerException):
    """Raised when persisting a batch fails."""
    pass
