"""Constants for the Coder Workspaces Provider."""

# API Group
API_GROUP = "coder.crossplane.io"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_WORKSPACE = "Workspace"
KIND_PROVIDER_CONFIG = "ProviderConfig"
PLURAL_PROVIDER_CONFIGS = "providerconfigs"

# Annotations
ANNOTATION_EXTERNAL_NAME = "crossplane.io/external-name"

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Field Manager
FIELD_MANAGER = "coder-workspaces-provider"
CONTROLLER_NAME = "coder-workspaces-provider"

# Defaults
DEFAULT_PROVIDER_CONFIG = "default"
DEFAULT_CREDENTIALS_KEY = "credentials"
DEFAULT_AUTOSTART_SCHEDULE = "CRON_TZ=UTC 30 8 * * 1-5"
DEFAULT_OWNER = "me"

# Credential sources
CREDENTIALS_SOURCE_SECRET = "Secret"
CREDENTIALS_SOURCE_ENVIRONMENT = "Environment"

# Deletion policies
DELETION_POLICY_DELETE = "Delete"
DELETION_POLICY_ORPHAN = "Orphan"

# Condition Types
COND_READY = "Ready"
COND_SYNCED = "Synced"
COND_AUTH_VALID = "AuthValid"
COND_ENDPOINT_REACHABLE = "EndpointReachable"

# Condition Reasons
REASON_AVAILABLE = "Available"
REASON_UNAVAILABLE = "Unavailable"
REASON_CREATING = "Creating"
REASON_DELETING = "Deleting"
REASON_RECONCILE_SUCCESS = "ReconcileSuccess"
REASON_RECONCILE_ERROR = "ReconcileError"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_VALIDATE_SUCCEEDED = "ValidateSucceeded"
EVENT_REASON_VALIDATE_FAILED = "ValidateFailed"
EVENT_REASON_WORKSPACE_CREATED = "CreatedExternalResource"
EVENT_REASON_WORKSPACE_UPDATED = "UpdatedExternalResource"
EVENT_REASON_WORKSPACE_DELETED = "DeletedExternalResource"
EVENT_REASON_CONNECTION_PUBLISHED = "PublishedConnectionDetails"

# Coder API
CODER_API_PREFIX = "/api/v2"
CODER_SESSION_HEADER = "Coder-Session-Token"
