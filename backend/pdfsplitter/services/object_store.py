"""
Object Store - Persistent off-box copies of split artifacts
Cloudflare R2 (or any S3-compatible store) reached through boto3

Uploads are advisory: a failure raises RemoteUploadError, which the
caller logs before falling back to the local download URL.
"""

import asyncio
from functools import partial
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from pdfsplitter.core.config import Settings
from pdfsplitter.core.exceptions import RemoteUploadError
from pdfsplitter.core.logging_config import logger


RETRYABLE_ERRORS = (ClientError, BotoCoreError, ConnectionError, TimeoutError)


def remote_key(job_id: str, file_name: str) -> str:
    """Object key of an artifact: jobs/{job_id}/{file_name}"""
    return f"jobs/{job_id}/{file_name}"


class S3ObjectStore:
    """
    Thin async wrapper over a boto3 S3 client.

    boto3 is blocking, so every call runs in the default executor.
    """

    def __init__(
        self,
        client,
        bucket_name: str,
        public_url: str,
        max_retries: int = 3,
        base_delay: float = 1.0,
    ):
        self._client = client
        self.bucket_name = bucket_name
        self.public_url = public_url.rstrip("/")
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["S3ObjectStore"]:
        """
        Build a store from settings.

        Returns None (uploads disabled) when storage is switched off or
        any required setting is missing; the missing names are logged.
        """
        if not settings.STORAGE_ENABLED:
            logger.info("[ObjectStore] Disabled by STORAGE_ENABLED=false")
            return None

        errors = settings.storage_config_errors()
        if errors:
            logger.warning(
                "[ObjectStore] Configuration incomplete, remote uploads disabled: "
                + "; ".join(errors)
            )
            return None

        client = boto3.client(
            's3',
            endpoint_url=settings.storage_endpoint_url,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=settings.AWS_REGION,
            config=Config(signature_version='s3v4'),
        )
        logger.info(f"[ObjectStore] Configured for bucket '{settings.S3_BUCKET_NAME}'")
        return cls(
            client,
            bucket_name=settings.S3_BUCKET_NAME,
            public_url=settings.STORAGE_PUBLIC_URL,
            max_retries=settings.STORAGE_MAX_RETRIES,
        )

    def public_url_for(self, key: str) -> str:
        return f"{self.public_url}/{key}"

    async def head_bucket(self) -> bool:
        """Connectivity probe, True if the bucket is reachable"""
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, partial(self._client.head_bucket, Bucket=self.bucket_name))
            logger.info(f"[ObjectStore] ✓ Bucket '{self.bucket_name}' reachable")
            return True
        except RETRYABLE_ERRORS as e:
            logger.warning(f"[ObjectStore] Bucket '{self.bucket_name}' not reachable: {e}")
            return False

    async def put(self, key: str, data: bytes, content_type: str = "application/pdf") -> str:
        """
        Upload bytes with retry logic and return the public URL.

        Retry behavior:
            - Retries on ClientError, BotoCoreError, ConnectionError, TimeoutError
            - Exponential backoff: 1s, 2s, 4s...

        Raises:
            RemoteUploadError: every attempt failed
        """
        loop = asyncio.get_running_loop()
        upload = partial(
            self._client.put_object,
            Bucket=self.bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type,
        )

        last_exception: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                await loop.run_in_executor(None, upload)
                logger.info(f"[ObjectStore] ✓ Uploaded: {key} ({len(data)} bytes)")
                return self.public_url_for(key)

            except RETRYABLE_ERRORS as e:
                last_exception = e
                if attempt < self.max_retries - 1:
                    delay = self.base_delay * (2 ** attempt)
                    logger.warning(
                        f"[ObjectStore] Attempt {attempt + 1}/{self.max_retries} failed for {key}: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )
                    await asyncio.sleep(delay)

        logger.error(f"[ObjectStore] ✗ All {self.max_retries} attempts failed for {key}: {last_exception}")
        raise RemoteUploadError(key, str(last_exception))
