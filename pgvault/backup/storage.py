"""
Object storage handler for backup artifacts.

Talks to any S3-compatible endpoint (MinIO in most deployments, AWS when no
endpoint is configured) using path-style addressing.
"""

import os
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError, BotoCoreError

from .errors import StorageError, UploadError
from .naming import CONTENT_TYPE

MULTIPART_THRESHOLD = 100 * 1024 * 1024  # 100MB
MULTIPART_CHUNK_SIZE = 10 * 1024 * 1024  # 10MB


def _error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', 'Unknown')


class S3Storage:
    """
    Handler for storing backups in an S3-compatible bucket.

    Keys are supplied by the caller (see backup.naming); this class only
    moves bytes and lists or removes objects.
    """

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        bucket_name: str,
        endpoint_url: Optional[str] = None,
        region: str = 'us-east-1'
    ):
        """
        Initialize S3 storage handler.

        Args:
            access_key: Access key ID
            secret_key: Secret access key
            bucket_name: Bucket holding the backups
            endpoint_url: S3 endpoint (e.g. http://minio:9000), None for AWS
            region: Region name (default: us-east-1)
        """
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url
        self.region = region

        try:
            self.s3_client = boto3.client(
                's3',
                endpoint_url=endpoint_url or None,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region,
                config=BotoConfig(s3={'addressing_style': 'path'})
            )
        except (BotoCoreError, ValueError) as e:
            raise StorageError(f"Failed to initialize S3 client: {e}") from e

    @classmethod
    def from_settings(cls, settings) -> 'S3Storage':
        """Build a handler from BackupSettings."""
        return cls(
            access_key=settings.access_key,
            secret_key=settings.secret_key,
            bucket_name=settings.bucket,
            endpoint_url=settings.storage_endpoint,
            region=settings.region
        )

    def upload(self, local_path: str, key: str, content_type: str = CONTENT_TYPE) -> str:
        """
        Upload an artifact under the given key.

        Args:
            local_path: Path to local file
            key: Object key to store it under
            content_type: Content-Type of the stored object

        Returns:
            Key of the uploaded object

        Raises:
            UploadError: If upload fails
        """
        if not os.path.exists(local_path):
            raise UploadError(f"Local file not found: {local_path}")

        try:
            if os.path.getsize(local_path) > MULTIPART_THRESHOLD:
                self._multipart_upload(local_path, key, content_type)
            else:
                self._simple_upload(local_path, key, content_type)
            return key

        except ClientError as e:
            raise UploadError(f"S3 upload of {key} failed ({_error_code(e)}): {e}") from e
        except (BotoCoreError, OSError) as e:
            raise UploadError(f"S3 upload of {key} failed: {e}") from e

    def _simple_upload(self, local_path: str, key: str, content_type: str):
        with open(local_path, 'rb') as f:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=f,
                ContentType=content_type
            )

    def _multipart_upload(self, local_path: str, key: str, content_type: str):
        """
        Upload a large file in MULTIPART_CHUNK_SIZE parts.

        The multipart upload is aborted if any part fails so no orphaned
        parts are left in the bucket.
        """
        response = self.s3_client.create_multipart_upload(
            Bucket=self.bucket_name,
            Key=key,
            ContentType=content_type
        )
        upload_id = response['UploadId']

        parts = []

        try:
            with open(local_path, 'rb') as f:
                part_number = 1

                while True:
                    data = f.read(MULTIPART_CHUNK_SIZE)
                    if not data:
                        break

                    response = self.s3_client.upload_part(
                        Bucket=self.bucket_name,
                        Key=key,
                        PartNumber=part_number,
                        UploadId=upload_id,
                        Body=data
                    )
                    parts.append({
                        'PartNumber': part_number,
                        'ETag': response['ETag']
                    })
                    part_number += 1

            self.s3_client.complete_multipart_upload(
                Bucket=self.bucket_name,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={'Parts': parts}
            )

        except Exception:
            try:
                self.s3_client.abort_multipart_upload(
                    Bucket=self.bucket_name,
                    Key=key,
                    UploadId=upload_id
                )
            except (ClientError, BotoCoreError):
                pass
            raise

    def delete(self, key: str):
        """
        Delete an object from the bucket.

        Raises:
            StorageError: If deletion fails
        """
        try:
            self.s3_client.delete_object(
                Bucket=self.bucket_name,
                Key=key
            )
        except ClientError as e:
            raise StorageError(f"S3 delete of {key} failed ({_error_code(e)}): {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3 delete of {key} failed: {e}") from e

    def list_objects(self, prefix: str) -> list:
        """
        List objects in the bucket with given prefix.

        Args:
            prefix: Key prefix to filter by

        Returns:
            List of dicts with 'Key', 'LastModified', and 'Size' keys

        Raises:
            StorageError: If listing fails
        """
        try:
            objects = []
            paginator = self.s3_client.get_paginator('list_objects_v2')

            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
                for obj in page.get('Contents', []):
                    objects.append({
                        'Key': obj['Key'],
                        'LastModified': obj['LastModified'],
                        'Size': obj['Size']
                    })

            return objects

        except ClientError as e:
            raise StorageError(f"S3 list of {prefix} failed ({_error_code(e)}): {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3 list of {prefix} failed: {e}") from e
