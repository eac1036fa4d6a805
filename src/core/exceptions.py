"""
Exceptions shared by the quiz core and the external service clients
"""


class StoreError(Exception):
    """Raised when the word store fails while loading a pool or persisting outcomes."""
    pass


class InvalidTransitionError(Exception):
    """Raised when a quiz session action is not valid in its current state."""
    pass


class ServiceError(Exception):
    """Base exception for external HTTP services."""
    pass


class DictionaryError(ServiceError):
    """Raised when the dictionary service fails."""
    pass


class WordNotFoundError(DictionaryError):
    """Raised when the dictionary has no entry for a word."""
    pass


class OcrError(ServiceError):
    """Raised when the OCR service rejects a request or returns an error."""
    pass
