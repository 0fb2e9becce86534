"""Background validation of the default AWS SDK configuration."""

import logging
import threading
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError


def check_sdk_default_config(logger: logging.Logger, session: Optional[boto3.session.Session] = None) -> bool:
    """
    Resolve the default region and credentials; log a warning for anything missing.
    Returns True when both could be resolved.
    """
    try:
        session = session or boto3.session.Session()
        region = session.region_name
        credentials = session.get_credentials()
    except BotoCoreError as e:
        logger.warning(f"Failed to load the default AWS SDK configuration: {e}")
        return False
    ok = True
    if not region:
        logger.warning("No default AWS region configured. AWS resources will need an explicit region.")
        ok = False
    if credentials is None:
        logger.warning("No default AWS credentials found. AWS resources will need an explicit profile.")
        ok = False
    return ok


def validate_sdk_default_config_in_background(logger: logging.Logger) -> threading.Thread:
    """Run check_sdk_default_config on a daemon thread so startup is not delayed."""
    thread = threading.Thread(
        target=check_sdk_default_config, args=(logger,),
        name="aws-sdk-config-check", daemon=True,
    )
    thread.start()
    return thread
