"""Constants for the Service Mesh Operator."""

# API Group
API_GROUP = "servicemesh.cloud37.dev"
API_VERSION = "v1beta1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_MESH = "Mesh"
KIND_VIRTUAL_SERVICE = "VirtualService"
KIND_VIRTUAL_DEPLOYMENT = "VirtualDeployment"
KIND_ACCESS_POLICY = "AccessPolicy"
KIND_INGRESS_GATEWAY = "IngressGateway"
KIND_VIRTUAL_SERVICE_ROUTE_TABLE = "VirtualServiceRouteTable"
KIND_INGRESS_GATEWAY_ROUTE_TABLE = "IngressGatewayRouteTable"

# Plurals used by the CustomObjectsApi
PLURALS = {
    KIND_MESH: "meshes",
    KIND_VIRTUAL_SERVICE: "virtualservices",
    KIND_VIRTUAL_DEPLOYMENT: "virtualdeployments",
    KIND_ACCESS_POLICY: "accesspolicies",
    KIND_INGRESS_GATEWAY: "ingressgateways",
    KIND_VIRTUAL_SERVICE_ROUTE_TABLE: "virtualserviceroutetables",
    KIND_INGRESS_GATEWAY_ROUTE_TABLE: "ingressgatewayroutetables",
}

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"


def custom_finalizer(kind: str) -> str:
    """Return the dependency-safety finalizer for a resource kind."""
    return f"{API_GROUP}/{kind.lower()}-resources"


# Controller
CONTROLLER_NAME = "servicemesh-operator"

# Condition Types
COND_DEPENDENCIES_ACTIVE = "DependenciesActive"
COND_CONFIGURED = "Configured"
COND_ACTIVE = "Active"
CONDITION_TYPES = (COND_DEPENDENCIES_ACTIVE, COND_CONFIGURED, COND_ACTIVE)

# Condition Statuses
STATUS_TRUE = "True"
STATUS_FALSE = "False"
STATUS_UNKNOWN = "Unknown"

# Condition Reasons
REASON_DEPENDENCIES_NOT_RESOLVED = "DependenciesNotResolved"
REASON_LIFECYCLE_STATE_CHANGED = "LifecycleStateChanged"
REASON_SUCCESSFUL = "Successful"
REASON_CONNECTION_ERROR = "ConnectionError"

# Condition Messages
MSG_DEPENDENCIES_RESOLVED = "Dependencies resolved successfully"
MSG_RESOURCE_CONFIGURED = "Resource configured successfully"
MSG_RESOURCE_CHANGE_COMPARTMENT = "Changing Compartment of the resource and verifying updates"
MSG_UNKNOWN_STATUS = "unknown status"

# Remote lifecycle states
LIFECYCLE_CREATING = "CREATING"
LIFECYCLE_ACTIVE = "ACTIVE"
LIFECYCLE_UPDATING = "UPDATING"
LIFECYCLE_DELETING = "DELETING"
LIFECYCLE_DELETED = "DELETED"
LIFECYCLE_FAILED = "FAILED"

# mTLS modes ordered from weakest to strongest
MTLS_LEVELS = {
    "DISABLED": 0,
    "PERMISSIVE": 1,
    "STRICT": 2,
}

# Validation limits
METADATA_NAME_MAX_LENGTH = 190

# Requeue intervals (seconds)
DEFAULT_RESYNC_INTERVAL_SECONDS = 3600
DEFAULT_REQUEUE_DELAY_SECONDS = 5
DEFAULT_ERROR_REQUEUE_DELAY_SECONDS = 120

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_VALIDATE_FAILED = "ValidateFailed"
EVENT_REASON_RESOURCE_CREATED = "ResourceCreated"
EVENT_REASON_RESOURCE_UPDATED = "ResourceUpdated"
EVENT_REASON_RESOURCE_DELETED = "ResourceDeleted"
EVENT_REASON_COMPARTMENT_CHANGED = "CompartmentChanged"
EVENT_REASON_FINALIZER_ADDED = "FinalizerAdded"
EVENT_REASON_FINALIZER_REMOVED = "FinalizerRemoved"
EVENT_REASON_DEPENDENCIES_PENDING = "DependenciesPending"
