#!/usr/bin/env python3
"""Look up the AWS instance-id of the current host from the metadata service."""

import logging
from typing import Optional

import requests

from configs.config import Config

logger = logging.getLogger(__name__)


class InstanceLookupError(Exception):
    """Raised when the instance metadata service is unreachable or answers badly."""
    pass


def look_up_instance_id(
    url: Optional[str] = None,
    timeout_s: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> str:
    """Fetch the instance-id, e.g. ``i-0123456789abcdef0``.

    Raises:
        InstanceLookupError: not on EC2, metadata disabled, or empty answer
    """
    url = url or Config.INSTANCE_METADATA_URL
    timeout_s = timeout_s if timeout_s is not None else Config.INSTANCE_METADATA_TIMEOUT_S
    http = session or requests

    try:
        response = http.get(url, timeout=timeout_s)
    except requests.RequestException as e:
        raise InstanceLookupError(f"error querying instance metadata at {url}: {e}") from e

    if response.status_code != 200:
        raise InstanceLookupError(f"instance metadata error: HTTP {response.status_code}")

    # tolerate "instance-id: i-..." style answers
    words = response.text.strip().split()
    if not words:
        raise InstanceLookupError("instance metadata returned an empty instance-id")
    instance_id = words[-1]
    logger.debug(f"✓ Instance id: {instance_id}")
    return instance_id
