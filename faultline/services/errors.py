"""Exceptions raised by faultline's own registration APIs."""


class DuplicateRegistrationError(Exception):
    """Raised when a factory or translator name is registered twice."""
    pass


class DuplicateTranslatorError(DuplicateRegistrationError):
    """Raised when a translator name is already registered."""
    pass


class DuplicateFactoryError(DuplicateRegistrationError):
    """Raised when an error factory already exists for a type."""
    pass
