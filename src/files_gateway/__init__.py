"""HTTP gateway for uploading, listing, downloading and deleting files kept in S3."""

__version__ = "1.0.0"
