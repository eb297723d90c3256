"""Faultline services package."""

from faultline.services.errors import (
    DuplicateFactoryError,
    DuplicateRegistrationError,
    DuplicateTranslatorError,
)
from faultline.services.translators import (
    Translator,
    TranslatorRegistry,
    UNDEFINED,
)
from faultline.services.serializer import Serializer
from faultline.services.error_registry import (
    ErrorFactory,
    ErrorRegistry,
    TrackedError,
    default_stack_provider,
    strip_token,
)
from faultline.services.audit import AuditWrapper
from faultline.services.assertions import Assertions
from faultline.services.reporting import (
    BackgroundLoop,
    DEFAULT_HANDLER,
    Gate,
    NoThrottle,
    ReportHandler,
    ReportingPipeline,
    ThrottlePolicy,
)
from faultline.services.uncaught import (
    install_excepthooks,
    install_loop_handler,
    uninstall_excepthooks,
)

__all__ = [
    'DuplicateRegistrationError',
    'DuplicateTranslatorError',
    'Translator',
    'TranslatorRegistry',
    'UNDEFINED',
    'Serializer',
    'DuplicateFactoryError',
    'ErrorFactory',
    'ErrorRegistry',
    'TrackedError',
    'default_stack_provider',
    'strip_token',
    'AuditWrapper',
    'Assertions',
    'BackgroundLoop',
    'DEFAULT_HANDLER',
    'Gate',
    'NoThrottle',
    'ReportHandler',
    'ReportingPipeline',
    'ThrottlePolicy',
    'install_excepthooks',
    'install_loop_handler',
    'uninstall_excepthooks',
]
