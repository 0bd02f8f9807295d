"""Core PAM container logic.

Pure Python: the persistent store and the workflow engine are reached only
through the Repository and WorkflowRunner capabilities.

Module Structure:
    - store/                 : Repository protocol, Filter algebra, in-memory store
    - workflow/              : Provisioning plan model, WorkflowRunner, HTTP client
    - correlation.py         : Correlation key column lookup per application schema
    - external_groups.py     : External group <-> PAM stub group bridging
    - container_service.py   : Direct/effective access queries for one container
    - permissions.py         : Merge permission grants per right for display
    - permission_planner.py  : Diff requested rights against an existing grant
    - privileged_items.py    : Index aligned privileged data lists
    - pam_request.py         : Approval state of a provisioning request
    - provisioning_service.py: Plan building and workflow submission

Usage Pattern:
    Import explicitly when needed:
        from pamgov.core.container_service import ContainerAccessResolver
        from pamgov.core.provisioning_service import ContainerProvisioningService
        from pamgov.core.store import Filter, InMemoryRepository
"""
