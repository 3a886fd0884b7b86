"""Credential sync - entry point."""

import logging
import os
import sys
from dotenv import load_dotenv

from .cluster import ClusterClient, get_k8s_apis
from .metrics import push_metrics
from .models import WatchScope
from .operator import Operator
from .security import ThreadLocalSecurityContext
from .stores import get_store

logger = logging.getLogger("credsync")

DEFAULT_LABEL_SELECTOR = "credential.sync.jenkins.openshift.io=true"


def store_config_from_env(store_name):
    """Return the keyword arguments for a store and the env vars missing for it."""
    if store_name.lower() != "jenkins":
        return {}, []
    required_env_vars = {
        "JENKINS_URL": os.environ.get("JENKINS_URL"),
        "JENKINS_USER": os.environ.get("JENKINS_USER"),
        "JENKINS_API_TOKEN": os.environ.get("JENKINS_API_TOKEN"),
    }
    missing_vars = [key for key,
                    value in required_env_vars.items() if not value]
    store_config = {
        "url": required_env_vars["JENKINS_URL"],
        "username": required_env_vars["JENKINS_USER"],
        "api_token": required_env_vars["JENKINS_API_TOKEN"],
    }
    return store_config, missing_vars


def main():
    """Main entry point for the credential sync job."""
    # Load environment variables from .env file
    load_dotenv()

    # Get log level from environment variable (default to INFO)
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if log_level not in valid_log_levels:
        log_level = "INFO"

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"Log level set to: {log_level}")

    watch_namespace = os.environ.get("WATCH_NAMESPACE", "").strip()
    label_selector = os.environ.get(
        "SECRET_LABEL_SELECTOR", DEFAULT_LABEL_SELECTOR)
    sync_build_configs = os.environ.get(
        "SYNC_BUILD_CONFIGS", "true").lower() == "true"
    store_name = os.environ.get("CREDENTIAL_STORE", "jenkins")
    pushgateway_url = os.environ.get("PUSHGATEWAY_URL")

    store_config, missing_vars = store_config_from_env(store_name)
    if missing_vars:
        logger.error(
            f"Missing required environment variables: {', '.join(missing_vars)}")
        sys.exit(1)

    if watch_namespace:
        watch_scope = WatchScope.single(watch_namespace)
        logger.info(f"Syncing secrets in namespace '{watch_namespace}'.")
    else:
        watch_scope = WatchScope.all_namespaces()
        logger.info("Syncing secrets in all namespaces.")

    logger.info(f"Initializing credential store '{store_name}'...")
    try:
        store = get_store(store_name, **store_config)
    except ValueError as e:
        logger.error(f"Failed to initialize credential store '{store_name}': {e}")
        sys.exit(1)

    logger.info("Testing credential store connection...")
    try:
        store.test_connection()
    except Exception as e:
        logger.error(f"Credential store connection test failed: {e}")
        sys.exit(1)

    v1_api, custom_api = get_k8s_apis()
    operator = Operator(
        ClusterClient(v1_api, custom_api),
        store,
        ThreadLocalSecurityContext(),
        watch_scope=watch_scope,
        label_selector=label_selector,
        sync_build_configs=sync_build_configs,
    )

    try:
        errors = operator.run()
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        if pushgateway_url:
            push_metrics(pushgateway_url)

    logger.info("Credential sync complete.")
    sys.exit(1 if errors else 0)


if __name__ == '__main__':
    main()
