"""Identity lifecycle automation package.

To run lifecycle operations:
    from lifecycle.core.operations import OnboardOperation, UpdateOperation, OffboardOperation

To drive a CSV batch:
    from lifecycle.core.batch import BatchProcessor

To use Microsoft Graph services directly:
    from lifecycle.core.graph import GraphClient, UserService
"""
