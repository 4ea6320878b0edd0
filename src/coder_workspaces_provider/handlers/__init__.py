"""Handler modules for CRD resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import providerconfig  # noqa: F401
from . import workspace  # noqa: F401
