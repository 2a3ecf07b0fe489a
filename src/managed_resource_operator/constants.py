"""Constants for the Managed Resource Operator."""

# API Group
API_GROUP = "operator.managed-resources.io"

# Labels
LABEL_MANAGED_BY = f"{API_GROUP}/managed-by"
LABEL_OWNER_KIND = f"{API_GROUP}/owner-kind"

# Annotations
ANNOTATION_DELETION_POLICY = f"{API_GROUP}/deletion-policy"

DELETION_POLICY_ORPHAN = "Orphan"

# Finalizers
FINALIZER = f"finalizers.{API_GROUP}/delete-remote-resource"

# Field Manager
FIELD_MANAGER = "managed-resource-operator"
CONTROLLER_NAME = "managed-resource-operator"

# Spec fields read by the engine
SPEC_SECRET_TARGET = "connInfoSecretTarget"
SPEC_SECRET_DISABLED = "connInfoSecretTargetDisabled"

# Status fields owned by the engine
STATUS_CONDITIONS = "conditions"
STATUS_OBSERVED_GENERATION = "observedGeneration"
STATUS_FAILED_ATTEMPTS = "failedAttempts"
RESERVED_STATUS_FIELDS = frozenset(
    {STATUS_CONDITIONS, STATUS_OBSERVED_GENERATION, STATUS_FAILED_ATTEMPTS}
)

# Condition Types
COND_READY = "Ready"
COND_ERROR = "Error"

# Condition Reasons
REASON_READY = "Ready"
REASON_PROVISIONING = "Provisioning"
REASON_PRECONDITIONS_NOT_MET = "PreconditionsNotMet"
REASON_POWERED_OFF = "PoweredOff"
REASON_SPEC_REJECTED = "SpecRejected"
REASON_RECONCILED = "Reconciled"

# Failing phases, used as the reason of the Error condition
PHASE_OBSERVE = "Observe"
PHASE_CREATE_OR_UPDATE = "CreateOrUpdate"
PHASE_DELETE = "Delete"
PHASE_CONN_INFO_SECRET = "ConnInfoSecret"
PHASE_FINALIZER = "Finalizer"

# Event Types
EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_FINALIZER_ADDED = "InstanceFinalizerAdded"
EVENT_REASON_UNABLE_TO_ADD_FINALIZER = "UnableToAddFinalizer"
EVENT_REASON_UNABLE_TO_REMOVE_FINALIZER = "UnableToDeleteFinalizer"
EVENT_REASON_UNABLE_TO_OBSERVE = "UnableToObserve"
EVENT_REASON_PRECONDITIONS_NOT_MET = "PreconditionsNotMet"
EVENT_REASON_POWERED_OFF = "InstancePoweredOff"
EVENT_REASON_CREATE_OR_UPDATE = "CreateOrUpdate"
EVENT_REASON_CREATED_OR_UPDATED = "CreatedOrUpdated"
EVENT_REASON_UNABLE_TO_CREATE_OR_UPDATE = "UnableToCreateOrUpdate"
EVENT_REASON_SPEC_REJECTED = "SpecRejected"
EVENT_REASON_INSTANCE_RUNNING = "InstanceIsRunning"
EVENT_REASON_TRYING_TO_DELETE = "TryingToDelete"
EVENT_REASON_SUCCESSFULLY_DELETED = "SuccessfullyDeleted"
EVENT_REASON_UNABLE_TO_DELETE = "UnableToDelete"
EVENT_REASON_DELETE_BLOCKED = "DeleteBlockedByDependencies"
EVENT_REASON_ORPHANED = "RemoteResourceOrphaned"
EVENT_REASON_SECRET_DISABLED = "ConnInfoSecretCreationDisabled"
EVENT_REASON_SECRET_FAILED = "CannotPublishConnectionDetails"
EVENT_REASON_STATUS_FAILED = "UnableToWriteStatus"

# Adapter discovery
DEFAULT_ENTRY_POINT_GROUP = "managed_resource_operator.kinds"
