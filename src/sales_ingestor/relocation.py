# src/sales_ingestor/relocation.py

"""
Moves source files to their terminal location.

Files arrive under the incoming prefix and leave for the processed or the
failed prefix. S3 has no rename, so a move is a copy followed by a delete;
if either step fails the source's state is undefined and a RelocationError
says which step broke.
"""

import logging

from .clients import ObjectStore
from .exceptions import InvalidObjectKeyError, RelocationError, S3Error

logger = logging.getLogger(__name__)


class FileRelocator:
    def __init__(
        self,
        store: ObjectStore,
        incoming_prefix: str = "incoming/",
        processed_prefix: str = "processed/",
        failed_prefix: str = "failed/",
    ):
        self._store = store
        self.incoming_prefix = incoming_prefix
        self.processed_prefix = processed_prefix
        self.failed_prefix = failed_prefix

    def _replace_prefix(self, key: str, target_prefix: str) -> str:
        # A key without the incoming prefix would map onto itself, and the
        # delete half of the move would then remove the only copy.
        if self.incoming_prefix not in key:
            raise InvalidObjectKeyError(
                f"Object key '{key}' does not contain the '{self.incoming_prefix}' prefix",
                error_code="MISSING_INCOMING_PREFIX",
                context={"key": key, "expected_prefix": self.incoming_prefix},
            )
        return key.replace(self.incoming_prefix, target_prefix, 1)

    def processed_path(self, key: str) -> str:
        return self._replace_prefix(key, self.processed_prefix)

    def failed_path(self, key: str) -> str:
        return self._replace_prefix(key, self.failed_prefix)

    def move_file(
        self, bucket: str, source_key: str, dest_bucket: str, dest_key: str
    ) -> None:
        """Copies the object to its destination, then deletes the source."""
        source = f"s3://{bucket}/{source_key}"
        destination = f"s3://{dest_bucket}/{dest_key}"
        if (bucket, source_key) == (dest_bucket, dest_key):
            raise RelocationError(
                "copy", source, destination, "source and destination are the same object"
            )

        try:
            self._store.copy_object(bucket, source_key, dest_bucket, dest_key)
        except S3Error as e:
            raise RelocationError(
                "copy", source, destination, e.message, context={"cause": e.to_dict()}
            ) from e

        try:
            self._store.delete_object(bucket, source_key)
        except S3Error as e:
            raise RelocationError(
                "delete", source, destination, e.message, context={"cause": e.to_dict()}
            ) from e

        logger.info("File moved successfully", extra={"from": source, "to": destination})

    def to_processed(self, bucket: str, key: str) -> str:
        dest_key = self.processed_path(key)
        self.move_file(bucket, key, bucket, dest_key)
        return dest_key

    def to_failed(self, bucket: str, key: str) -> str:
        dest_key = self.failed_path(key)
        self.move_file(bucket, key, bucket, dest_key)
        return dest_key
