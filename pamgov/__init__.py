"""PAM container access package.

To resolve who can reach a container:
    from pamgov.core.container_service import ContainerAccessResolver

To submit access changes:
    from pamgov.core.provisioning_service import ContainerProvisioningService
"""
# Note: settings are not imported here; pamgov.config loads them from the
# environment at import time
