"""Functions for deleting objects from an S3 bucket--the "D" in CRUD."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client


def delete_s3_object(s3_client: "S3Client", bucket_name: str, object_key: str) -> None:
    """
    Delete an object from an S3 bucket.

    :param s3_client: the boto3 S3 client.
    :param bucket_name: The name of the S3 bucket.
    :param object_key: name of the object to delete.
    """
    s3_client.delete_object(Bucket=bucket_name, Key=object_key)
