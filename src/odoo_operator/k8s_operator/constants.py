API_GROUP = 'instance.odoo.io'
API_VERSION = 'v1beta1'

# Labels used by the operator to establish a parent/child relationship between CRs and other resources.
LABEL_PARENT_KIND = 'operator.odoo.io/parent-kind'
LABEL_PARENT_NAMESPACE = 'operator.odoo.io/parent-namespace'
LABEL_PARENT_NAME = 'operator.odoo.io/parent-name'
LABEL_COMPONENT = 'operator.odoo.io/component'

# Instance labels
LABEL_CLUSTER_NAME = 'cluster.odoo.io/name'
LABEL_INSTANCE_HOSTNAME = 'instance.odoo.io/hostname'

# Field names in the spec section of an OdooInstance
INSTANCE_SPEC_HOSTNAME = 'hostname'
INSTANCE_SPEC_PARENT_HOSTNAME = 'parentHostname'

# Field names in the status section of an OdooInstance
INSTANCE_STATUS_CONDITIONS = 'conditions'

CONDITION_TYPE = 'type'
CONDITION_STATUS = 'status'
CONDITION_REASON = 'reason'
CONDITION_MESSAGE = 'message'
CONDITION_LAST_TRANSITION_TIME = 'lastTransitionTime'

CONDITION_STATUS_TRUE = 'True'
CONDITION_STATUS_UNKNOWN = 'Unknown'

# Condition types of an OdooInstance
INSTANCE_CONDITION_TYPE_CREATED = 'Created'

# Reasons recorded by the copier
CONDITION_REASON_COPY_JOB_CREATED = 'CopyJobCreated'
CONDITION_REASON_COPY_JOB_SUCCEEDED = 'CopyJobSucceeded'

# Constants for field names in the status section of a Job
JOB_STATUS_FAILED = 'failed'
JOB_STATUS_SUCCEEDED = 'succeeded'

# Propagation policies for deletions
PROPAGATION_POLICY_BACKGROUND = 'Background'
