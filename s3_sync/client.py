"""
Module for building the S3 client used by listing and transfers.
"""
import logging
from typing import Optional

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10
DEFAULT_READ_TIMEOUT = 60


def create_s3_client(region: Optional[str] = None, profile: Optional[str] = None,
                     endpoint_url: Optional[str] = None,
                     connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
                     read_timeout: int = DEFAULT_READ_TIMEOUT,
                     max_pool_connections: int = 10):
    """Create an S3 client.

    Every network call made through the client inherits the timeouts
    configured here.

    Args:
        region: AWS region, or None for the environment default
        profile: Named credentials profile, or None for the default chain
        endpoint_url: Custom endpoint (S3-compatible stores)
        connect_timeout: Connection timeout in seconds
        read_timeout: Read timeout in seconds
        max_pool_connections: Size of the HTTP connection pool

    Returns:
        boto3 S3 client
    """
    config = Config(
        region_name=region,
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        max_pool_connections=max_pool_connections,
        retries={'max_attempts': 3, 'mode': 'standard'},
    )
    session = boto3.session.Session(profile_name=profile) if profile else boto3.session.Session()
    logger.debug(f"Creating S3 client (region={region}, profile={profile}, endpoint={endpoint_url})")
    return session.client('s3', config=config, endpoint_url=endpoint_url)
