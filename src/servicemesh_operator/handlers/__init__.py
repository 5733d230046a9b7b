"""Handler modules for CRD resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import access_policy  # noqa: F401
from . import ingress_gateway  # noqa: F401
from . import ingress_gateway_route_table  # noqa: F401
from . import mesh  # noqa: F401
from . import virtual_deployment  # noqa: F401
from . import virtual_service  # noqa: F401
from . import virtual_service_route_table  # noqa: F401
