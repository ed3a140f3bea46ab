"""
S3 storage for archived originals and share links.
"""
import io
import uuid
import logging
from typing import Optional

import boto3
from botocore.exceptions import ClientError

from .config import StorageConfig

logger = logging.getLogger(__name__)


class S3Storage:
    """Handles S3 operations for uploaded originals."""

    def __init__(
        self,
        bucket_name: str,
        region: str = None,
        access_key_id: str = None,
        secret_access_key: str = None,
        client=None,
    ):
        """
        Initialize S3 storage client.

        Args:
            bucket_name: S3 bucket name
            region: AWS region
            access_key_id: AWS access key (falls back to the boto3 credential chain)
            secret_access_key: AWS secret key
            client: Pre-built boto3 S3 client (tests)
        """
        self.bucket_name = bucket_name
        self.region = region

        self.s3_client = client or boto3.client(
            's3',
            region_name=self.region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )

        logger.info(f"S3 Storage initialized: bucket={self.bucket_name}, region={self.region}")

    @staticmethod
    def document_key(owner_id: int, filename: str) -> str:
        """Generate S3 key for a user's original upload."""
        safe_filename = filename.replace('/', '_').replace('\\', '_').replace(' ', '_')
        return f"users/{owner_id}/{uuid.uuid4().hex[:12]}_{safe_filename}"

    def upload_file(self, key: str, data: bytes, content_type: str, owner_id: int, filename: str) -> str:
        """
        Upload a file to S3.

        Returns:
            S3 key where the file was stored
        """
        try:
            self.s3_client.upload_fileobj(
                io.BytesIO(data),
                self.bucket_name,
                key,
                ExtraArgs={
                    'ContentType': content_type,
                    'Metadata': {
                        'owner_id': str(owner_id),
                        'original_filename': filename.encode('ascii', errors='replace').decode('ascii'),
                    }
                }
            )
            logger.info(f"Uploaded original to S3: {key}")
            return key
        except ClientError as e:
            logger.error(f"Failed to upload file to S3: {e}")
            raise

    def delete_file(self, key: str) -> bool:
        """Delete a file from S3."""
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
            logger.info(f"Deleted file from S3: {key}")
            return True
        except ClientError as e:
            logger.error(f"Failed to delete file from S3: {e}")
            raise

    def get_presigned_url(self, key: str, expiration: int = 3600) -> str:
        """
        Generate a presigned URL for downloading a file.

        Args:
            key: The S3 key of the document
            expiration: URL expiration time in seconds (default 1 hour)
        """
        try:
            return self.s3_client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket_name, 'Key': key},
                ExpiresIn=expiration
            )
        except ClientError as e:
            logger.error(f"Failed to generate presigned URL: {e}")
            raise


def create_storage(config: StorageConfig) -> Optional[S3Storage]:
    """Build the S3 storage when a bucket is configured, else None."""
    if not config.enabled:
        logger.info("Object storage not configured; originals are not archived")
        return None
    return S3Storage(
        bucket_name=config.bucket_name,
        region=config.region,
        access_key_id=config.access_key_id,
        secret_access_key=config.secret_access_key,
    )
