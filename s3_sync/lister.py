"""
Module for listing the objects stored under a bucket prefix.
"""
import logging
from typing import Dict

from botocore.exceptions import BotoCoreError, ClientError

from .errors import RemoteListFailed
from .models import RemoteObjectMeta

logger = logging.getLogger(__name__)


class RemoteLister:
    """Lists bucket objects through the list_objects_v2 paginator."""

    def __init__(self, s3_client, page_size: int = 1000):
        self.s3_client = s3_client
        self.page_size = page_size

    def list_objects(self, bucket: str, prefix: str = "") -> Dict[str, RemoteObjectMeta]:
        """List every object under a prefix.

        Args:
            bucket: S3 bucket name
            prefix: Key prefix, already normalized

        Returns:
            Mapping of prefix-relative key to RemoteObjectMeta, in listing order

        Raises:
            RemoteListFailed: If any listing call fails
        """
        objects: Dict[str, RemoteObjectMeta] = {}
        kwargs = {'Bucket': bucket, 'PaginationConfig': {'PageSize': self.page_size}}
        if prefix:
            kwargs['Prefix'] = prefix

        try:
            paginator = self.s3_client.get_paginator('list_objects_v2')
            for page in paginator.paginate(**kwargs):
                for obj in page.get('Contents', []):
                    key = obj['Key']
                    etag = obj.get('ETag')
                    objects[key[len(prefix):]] = RemoteObjectMeta(
                        key=key,
                        size_bytes=int(obj.get('Size', 0)),
                        etag=etag.strip('"') if etag else None,
                    )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error listing s3://{bucket}/{prefix}: {e}")
            raise RemoteListFailed(bucket, prefix, e) from e

        logger.debug(f"Listed {len(objects)} objects under s3://{bucket}/{prefix}")
        return objects
