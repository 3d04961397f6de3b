"""
S3 object storage for task definition overrides and rollout results.

Reads return one of three results: a JSON document, a plain text body, or
an absent object. JSON and text are told apart by the object's content
type only.
"""

import json
from dataclasses import dataclass
from typing import Any, Union

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ecs_rollout.exceptions import MalformedObjectError, RemoteCallError
from ecs_rollout.utils import get_logger

TEXT_CONTENT_TYPE = "text/plain"

NOT_FOUND_ERROR_CODES = {"NoSuchKey", "NotFound", "404"}


@dataclass(frozen=True)
class JsonObject:
    """A stored JSON document."""

    value: Any


@dataclass(frozen=True)
class TextObject:
    """A stored plain text body."""

    text: str


@dataclass(frozen=True)
class AbsentObject:
    """A key with no object stored under it."""

    bucket: str
    key: str


StoredObject = Union[JsonObject, TextObject, AbsentObject]


def s3_url(bucket: str, key: str) -> str:
    return f"s3://{bucket}/{key}"


class ObjectStore:
    """
    S3 client with encapsulated API access.
    """

    def __init__(self, region: str | None = None, client=None):
        """
        Initialize the S3 client.

        Args:
            region: AWS region
            client: Pre-built boto3 S3 client to use instead of creating one
        """

        self._s3 = client or boto3.client("s3", region_name=region or None)
        self._logger = get_logger(__name__)

    def get(self, bucket: str, key: str) -> StoredObject:
        """
        Read an object.

        Args:
            bucket: Bucket name
            key: Object key

        Returns:
            JsonObject, TextObject or AbsentObject

        Raises:
            MalformedObjectError: If a JSON object cannot be decoded
            RemoteCallError: If the read fails for any reason other than a missing key
        """

        url = s3_url(bucket, key)
        self._logger.debug("Reading %s", url)

        try:
            response = self._s3.get_object(Bucket=bucket, Key=key)
            body = response["Body"].read()
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in NOT_FOUND_ERROR_CODES:
                self._logger.debug("Couldn't find %s", url)
                return AbsentObject(bucket=bucket, key=key)
            raise RemoteCallError(
                f"Failed to read {url}: {e}", operation="get_object", resource=url
            ) from e
        except BotoCoreError as e:
            raise RemoteCallError(
                f"Failed to read {url}: {e}", operation="get_object", resource=url
            ) from e

        try:
            text = body.decode("utf-8") if isinstance(body, bytes) else str(body)
        except UnicodeDecodeError as e:
            raise MalformedObjectError(f"{url} is not valid UTF-8: {e}") from e

        content_type = response.get("ContentType") or ""
        if "json" in content_type:
            try:
                return JsonObject(value=json.loads(text))
            except json.JSONDecodeError as e:
                raise MalformedObjectError(f"{url} is not valid JSON: {e}") from e

        return TextObject(text=text)

    def put(self, bucket: str, key: str, body: str, content_type: str) -> None:
        """
        Write an object, replacing any existing one.

        Args:
            bucket: Bucket name
            key: Object key
            body: Object content
            content_type: MIME type stored with the object

        Raises:
            RemoteCallError: If the write fails
        """

        url = s3_url(bucket, key)
        self._logger.debug("Writing %s (%s)", url, content_type)

        try:
            self._s3.put_object(
                Bucket=bucket,
                Key=key,
                ContentType=content_type,
                Body=body.encode("utf-8"),
            )
        except (ClientError, BotoCoreError) as e:
            raise RemoteCallError(
                f"Failed to write {url}: {e}", operation="put_object", resource=url
            ) from e

    def put_text(self, bucket: str, key: str, text: str) -> None:
        """
        Write a plain text object.
        """

        self.put(bucket, key, text, TEXT_CONTENT_TYPE)
