"""Sync Kubernetes/OpenShift secrets into Jenkins credentials."""
