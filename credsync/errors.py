class CredentialSyncError(IOError):
    """Base class for collaborator failures surfaced to the caller."""


class ClusterError(CredentialSyncError):
    """Fetching a resource from the cluster failed."""


class StoreError(CredentialSyncError):
    """Reading from or writing to the credential store failed."""
