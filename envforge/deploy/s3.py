"""Object storage uploads for environment custom resources."""

import io
import zipfile
from dataclasses import dataclass
from typing import Callable
from botocore.exceptions import ClientError

from envforge.core.aws_client import AWSClientManager


class S3UploadError(Exception):
    """Raised when an object cannot be uploaded."""
    pass


@dataclass(frozen=True)
class NamedBinary:
    """A file name and its content."""

    name: str
    content: bytes


# Signature of the callback the custom resource packager uploads through:
# (key, *objects) -> URL of the uploaded archive.
CompressAndUploadFunc = Callable[..., str]


def zip_objects(*objects: NamedBinary) -> bytes:
    """Compress named files into one zip archive."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for obj in objects:
            info = zipfile.ZipInfo(obj.name, date_time=(1980, 1, 1, 0, 0, 0))
            info.external_attr = 0o644 << 16
            info.compress_type = zipfile.ZIP_DEFLATED
            archive.writestr(info, obj.content)
    return buffer.getvalue()


class S3Uploader:
    """Uploads objects into a bucket of the environment's region."""

    def __init__(self, aws_client: AWSClientManager, region_name: str) -> None:
        self.aws_client = aws_client
        self.region_name = region_name
        self._s3_client = None

    def _get_client(self):
        if self._s3_client is None:
            self._s3_client = self.aws_client.get_client("s3", self.region_name)
        return self._s3_client

    def object_url(self, bucket: str, key: str) -> str:
        """Virtual-hosted style URL of an object."""
        return f"https://{bucket}.s3.{self.region_name}.amazonaws.com/{key}"

    def zip_and_upload(self, bucket: str, key: str, *objects: NamedBinary) -> str:
        """Zip the objects into one archive and upload it.

        Returns:
            URL of the uploaded archive

        Raises:
            S3UploadError: When the upload fails
        """
        try:
            self._get_client().put_object(
                Bucket=bucket,
                Key=key,
                Body=zip_objects(*objects),
                ContentType="application/zip",
                ServerSideEncryption="AES256",
            )
        except ClientError as e:
            raise S3UploadError(f"upload {key} to bucket {bucket}: {e}") from e
        return self.object_url(bucket, key)
