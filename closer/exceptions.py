"""Domain exceptions for the decision core."""


class CloserError(Exception):
    """Base class for every error raised by closer."""
    pass


class RulePackError(CloserError):
    """Raised when a bundled rule or content pack is missing or invalid."""
    pass


class TemplateNotFoundError(CloserError):
    """Raised by strict template lookups when a key has no content."""
    pass
