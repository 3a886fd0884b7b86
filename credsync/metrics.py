"""Prometheus metrics for the credential sync job."""

import logging
from prometheus_client import REGISTRY, Counter, Histogram, push_to_gateway

logger = logging.getLogger("credsync")

SECRETS_PROCESSED = Counter(
    'credsync_secrets_processed_total', 'Total number of secrets synced to credentials')
SECRETS_SKIPPED = Counter(
    'credsync_secrets_skipped_total', 'Total number of secrets that could not be translated')
ERRORS_TOTAL = Counter('credsync_errors_total',
                       'Total number of errors encountered')
SYNC_DURATION = Histogram(
    'credsync_sync_duration_seconds', 'Duration of a sync pass')
UPSERT_DURATION = Histogram(
    'credsync_upsert_duration_seconds', 'Duration of upserting a credential')

# Credential store operation metrics
CREDENTIALS_CREATED = Counter('credsync_credentials_created_total',
                              'Total number of credentials created')
CREDENTIALS_UPDATED = Counter('credsync_credentials_updated_total',
                              'Total number of credentials updated')


def push_metrics(gateway, job="credsync", registry=REGISTRY):
    """Push the collected metrics to a Prometheus Pushgateway."""
    try:
        push_to_gateway(gateway, job=job, registry=registry)
        logger.info(f"Pushed metrics to {gateway}.")
    except OSError as e:
        logger.warning(f"Failed to push metrics to {gateway}: {e}")
