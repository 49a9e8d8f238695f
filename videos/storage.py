import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from .config import StorageConfig
from .errors import ObjectNotFound, StorageError, StorageUnavailable

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}
_BUCKET_RACE_CODES = {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}
_TRANSPORT_ERRORS = (EndpointConnectionError, ConnectionClosedError, ConnectTimeoutError, ReadTimeoutError)


def public_read_policy(bucket: str) -> str:
    """Bucket policy granting anonymous s3:GetObject on every key."""
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"AWS": ["*"]},
                "Action": ["s3:GetObject"],
                "Resource": [f"arn:aws:s3:::{bucket}/*"],
            }
        ],
    })


def make_client(config: StorageConfig, *, endpoint_url: str | None = None):
    """
    SDK client for server-side upload/download. Pass the public endpoint for
    presigning so the URL host matches what the browser/curl will reach.
    """
    session = boto3.session.Session(
        aws_access_key_id=config.access_key,
        aws_secret_access_key=config.secret_key,
        region_name=config.region,
    )
    return session.client(
        "s3",
        endpoint_url=endpoint_url or config.endpoint_url,  # e.g. http://127.0.0.1:9000
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        ),
    )


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


@contextmanager
def _body_read_errors():
    try:
        yield
    except _TRANSPORT_ERRORS as exc:
        raise StorageUnavailable(f"object read interrupted: {exc}") from exc
    except BotoCoreError as exc:
        raise StorageError(f"object read failed: {exc}") from exc


@dataclass
class StoredObject:
    """Readable handle on an object body plus its stored size."""

    body: Any
    size: int
    content_type: str | None = None

    def iter_chunks(self, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        try:
            while True:
                with _body_read_errors():
                    chunk = self.body.read(chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            self.close()

    def read_text(self, encoding: str = "utf-8") -> str:
        """Read the whole body as text; undecodable bytes raise StorageError."""
        try:
            with _body_read_errors():
                data = self.body.read()
        finally:
            self.close()
        try:
            return data.decode(encoding)
        except UnicodeDecodeError as exc:
            raise StorageError(f"object body is not {encoding} text: {exc}") from exc

    def close(self) -> None:
        close = getattr(self.body, "close", None)
        if close is not None:
            close()


class ObjectStore:
    """Capability over a single bucket of an S3-compatible store (MinIO, S3).

    ``public_read`` buckets get an anonymous GetObject policy when ensured;
    private buckets never do.
    """

    def __init__(self, config: StorageConfig, bucket: str, *, public_read: bool = False,
                 client=None, presign_client=None) -> None:
        self.config = config
        self.bucket = bucket
        self.public_read = public_read
        self._client = client
        self._presign_client = presign_client

    @classmethod
    def source(cls, config: StorageConfig, **kwargs) -> "ObjectStore":
        return cls(config, config.source_bucket, public_read=False, **kwargs)

    @classmethod
    def output(cls, config: StorageConfig, **kwargs) -> "ObjectStore":
        return cls(config, config.output_bucket, public_read=True, **kwargs)

    @property
    def client(self):
        if self._client is None:
            self._client = make_client(self.config)
        return self._client

    @property
    def presign_client(self):
        if self._presign_client is None:
            self._presign_client = make_client(self.config, endpoint_url=self.config.public_endpoint)
        return self._presign_client

    @contextmanager
    def _translate_errors(self, key: str | None = None):
        try:
            yield
        except _TRANSPORT_ERRORS as exc:
            raise StorageUnavailable(f"object store unreachable: {exc}") from exc
        except ClientError as exc:
            if key is not None and _error_code(exc) in _NOT_FOUND_CODES:
                raise ObjectNotFound(self.bucket, key) from exc
            raise StorageError(f"{self.bucket}: {exc}") from exc
        except (S3UploadFailedError, BotoCoreError) as exc:
            raise StorageError(f"{self.bucket}: {exc}") from exc

    def fetch_to_local(self, key: str, local_path) -> Path:
        """Download a single object to ``local_path``."""
        local_path = Path(local_path)
        logger.info("downloading %s/%s", self.bucket, key)
        with self._translate_errors(key):
            self.client.download_file(self.bucket, key, str(local_path))
        return local_path

    def put_local(self, local_path, key: str, content_type: str | None = None) -> None:
        """
        Upload a single file with an optional Content-Type.
        Re-uploading the same key overwrites it.
        """
        extra = {}
        if content_type:
            extra["ContentType"] = content_type
        logger.info("uploading %s/%s", self.bucket, key)
        with self._translate_errors():
            self.client.upload_file(str(local_path), self.bucket, key, ExtraArgs=extra or None)

    def ensure_bucket(self) -> None:
        """Create the bucket if absent; tolerate a concurrent creator."""
        with self._translate_errors():
            try:
                self.client.head_bucket(Bucket=self.bucket)
            except ClientError as exc:
                if _error_code(exc) not in _NOT_FOUND_CODES:
                    raise
                logger.info("bucket %s does not exist, creating it", self.bucket)
                try:
                    self.client.create_bucket(Bucket=self.bucket)
                except ClientError as create_exc:
                    if _error_code(create_exc) not in _BUCKET_RACE_CODES:
                        raise
            if self.public_read:
                self.client.put_bucket_policy(Bucket=self.bucket, Policy=public_read_policy(self.bucket))

    def open_stream(self, key: str) -> StoredObject:
        with self._translate_errors(key):
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
        return StoredObject(body=resp["Body"], size=int(resp["ContentLength"]), content_type=resp.get("ContentType"))

    def stat_object(self, key: str) -> bool:
        try:
            with self._translate_errors(key):
                self.client.head_object(Bucket=self.bucket, Key=key)
        except ObjectNotFound:
            return False
        return True

    def presigned_put(self, key: str, content_type: str | None = None, expires: int | None = None) -> dict:
        """
        Create a presigned PUT URL to upload a single object directly to S3/MinIO.

        ContentType is not part of the signature; the returned headers are advisory.
        """
        url = self.presign_client.generate_presigned_url(
            ClientMethod="put_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires or self.config.upload_expire_seconds,
            HttpMethod="PUT",
        )
        headers = {"Content-Type": content_type} if content_type else {}
        return {"url": url, "headers": headers}

    def presigned_get(self, key: str, expires: int | None = None) -> str:
        """Create a presigned GET URL to download an object."""
        return self.presign_client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires or self.config.presign_expire_seconds,
            HttpMethod="GET",
        )
