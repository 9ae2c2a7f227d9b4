"""Functions for reading objects from an S3 bucket--the "R" in CRUD."""

from typing import TYPE_CHECKING, List, Optional

from botocore.exceptions import ClientError

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client
    from mypy_boto3_s3.type_defs import GetObjectOutputTypeDef, ObjectTypeDef

NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


def is_not_found(error: ClientError) -> bool:
    """Whether a ClientError means the object (not the bucket) is missing."""
    return error.response.get("Error", {}).get("Code") in NOT_FOUND_CODES


def object_exists_in_s3(s3_client: "S3Client", bucket_name: str, object_key: str) -> bool:
    """
    Check if an object exists in the S3 bucket using head_object.

    :param s3_client: the boto3 S3 client.
    :param bucket_name: Name of the S3 bucket.
    :param object_key: Key of the object to check.

    :return: True if the object exists, False otherwise.
    """
    try:
        s3_client.head_object(Bucket=bucket_name, Key=object_key)
        return True
    except ClientError as err:
        if is_not_found(err):
            return False
        raise


def fetch_s3_object(
    s3_client: "S3Client", bucket_name: str, object_key: str
) -> "GetObjectOutputTypeDef":
    """
    Fetch an object from an S3 bucket.

    The returned ``Body`` is an open stream; the caller must close it.

    :param s3_client: the boto3 S3 client.
    :param bucket_name: The name of the S3 bucket.
    :param object_key: The key of the object to fetch.

    :return: The ``get_object`` response.
    """
    return s3_client.get_object(Bucket=bucket_name, Key=object_key)


def fetch_s3_objects_metadata(
    s3_client: "S3Client", bucket_name: str, page_size: Optional[int] = None
) -> List["ObjectTypeDef"]:
    """
    Fetch the listing entries of every object in a bucket.

    Drains all pages of ``list_objects_v2`` and keeps the order the backend
    returned them in.

    :param s3_client: the boto3 S3 client.
    :param bucket_name: The name of the S3 bucket.
    :param page_size: Keys requested per page, the backend default when None.

    :return: The ``Contents`` entries of every page.
    """
    paginator = s3_client.get_paginator("list_objects_v2")
    objects = []
    pagination_config = {"PageSize": page_size} if page_size else {}
    for page in paginator.paginate(Bucket=bucket_name, PaginationConfig=pagination_config):
        objects.extend(page.get("Contents", []))
    return objects
