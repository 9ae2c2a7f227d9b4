"""Functions for making sure the target bucket exists."""

import logging
from typing import TYPE_CHECKING

from botocore.exceptions import ClientError

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)

MISSING_BUCKET_CODES = ("404", "NoSuchBucket", "NotFound")


def bucket_exists(s3_client: "S3Client", bucket_name: str) -> bool:
    """Check whether the bucket exists and is reachable with our credentials."""
    try:
        s3_client.head_bucket(Bucket=bucket_name)
        return True
    except ClientError as err:
        if err.response.get("Error", {}).get("Code") in MISSING_BUCKET_CODES:
            return False
        raise


def create_bucket(s3_client: "S3Client", bucket_name: str, region: str = "us-east-1") -> None:
    """
    Create a private bucket.

    S3 rejects an explicit ``LocationConstraint`` of ``us-east-1``, so it is only
    sent for other regions. Losing a creation race to ourselves is not an error.
    """
    kwargs = {"Bucket": bucket_name}
    if region and region != "us-east-1":
        kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
    try:
        s3_client.create_bucket(**kwargs)
        logger.info(f"Created bucket '{bucket_name}' in {region}")
    except ClientError as err:
        if err.response.get("Error", {}).get("Code") != "BucketAlreadyOwnedByYou":
            raise


def ensure_bucket_exists(s3_client: "S3Client", bucket_name: str, region: str = "us-east-1") -> None:
    """Create the bucket if it is missing. Safe to call any number of times."""
    if not bucket_exists(s3_client, bucket_name):
        logger.warning(f"Bucket '{bucket_name}' not found, creating it")
        create_bucket(s3_client, bucket_name, region)
