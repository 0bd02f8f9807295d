"""Attribute names and type constants shared by the PAM container services."""

# Correlation attributes carried by stub groups and external-referenced links
ATTR_EXTERNAL_NATIVE_IDENTIFIER = "nativeIdentifier"
ATTR_EXTERNAL_SOURCE = "source"

# Managed attribute types
OBJECT_TYPE_CONTAINER = "Container"
OBJECT_TYPE_PRIVILEGED_DATA = "PrivilegedData"
OBJECT_TYPE_GROUP = "group"

# Target association owner types
OWNER_TYPE_LINK = "L"
OWNER_TYPE_ATTRIBUTE = "A"

# Identity entitlement aggregation states
AGGREGATION_STATE_CONNECTED = "Connected"
AGGREGATION_STATE_DISCONNECTED = "Disconnected"

# Schema object types
SCHEMA_ACCOUNT = "account"
SCHEMA_GROUP = "group"

# Privileged data lists stored on the container managed attribute (index aligned)
PD_VALUE = "privilegedData.value"
PD_DISPLAY = "privilegedData.display"
PD_TYPE = "privilegedData.type"
PD_REF = "privilegedData.$ref"

# Container provisioning attribute map keys
ATT_APPLICATION = "application"
ATT_NATIVE_IDENTITY = "nativeIdentity"
ATT_ID = "id"
ATT_ATTRIBUTES = "Attributes"
ATT_NAME = "name"
ATT_TYPE = "type"
ATT_DISPLAY_NAME = "displayName"
ATT_OWNER = "sysOwner"
PROV_DISPLAY_NAME = "sysDisplayName"
PROV_MANAGED_ATTRIBUTE_TYPE = "sysManagedAttributeType"

# Workflow plumbing
ARG_ASSIGNMENT = "assignment"
ARG_CONTAINER_NAME = "containerName"
ARG_CONTAINER_DISPLAY_NAME = "containerDisplayName"
ARG_CONTAINER_OWNER_NAME = "containerOwnerName"
WORKFLOW_CASE_TARGET_CLASS = "ManagedAttribute"

# Correlation key column prefix (key1..key4)
CORRELATION_KEY_PREFIX = "key"
