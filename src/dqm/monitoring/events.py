"""Upload events and the rules that route them to a content provider.

An execution is triggered by an "Object Created" event from the input
bucket::

    {
        "source": "aws.s3",
        "detail-type": "Object Created",
        "detail": {
            "bucket": {"name": "dqmadevstack-input-bucket"},
            "object": {"key": "beta-content-provider/success-path/valid-file.csv"}
        }
    }

Each content provider owns one ``EventRule``: same source and detail
type, bucket equality, and a key prefix equal to the provider path.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

S3_SOURCE = "aws.s3"
OBJECT_CREATED = "Object Created"


class BucketRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1)


class ObjectRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    key: str = Field(..., min_length=1)
    size: int | None = None


class UploadDetail(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    bucket: BucketRef
    object_ref: ObjectRef = Field(..., alias="object")


class UploadEvent(BaseModel):
    """Storage notification for a newly created object."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    source: str = S3_SOURCE
    detail_type: str = Field(default=OBJECT_CREATED, alias="detail-type")
    detail: UploadDetail

    @classmethod
    def for_object(cls, bucket_name: str, object_key: str) -> UploadEvent:
        """Build an Object Created event for ``bucket_name``/``object_key``."""
        return cls.model_validate(
            {
                "source": S3_SOURCE,
                "detail-type": OBJECT_CREATED,
                "detail": {"bucket": {"name": bucket_name}, "object": {"key": object_key}},
            }
        )

    @property
    def bucket_name(self) -> str:
        return self.detail.bucket.name

    @property
    def object_key(self) -> str:
        return self.detail.object_ref.key

    def to_dict(self) -> dict[str, Any]:
        """Wire form, with the original field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class EventRule:
    """Matches upload events for one content provider."""

    bucket_name: str
    key_prefix: str
    source: str = S3_SOURCE
    detail_type: str = OBJECT_CREATED

    def matches(self, event: UploadEvent) -> bool:
        return (
            event.source == self.source
            and event.detail_type == self.detail_type
            and event.bucket_name == self.bucket_name
            and event.object_key.startswith(self.key_prefix)
        )

    def to_pattern(self) -> dict[str, Any]:
        """Event pattern form of this rule."""
        return {
            "source": [self.source],
            "detail-type": [self.detail_type],
            "detail": {
                "bucket": {"name": [self.bucket_name]},
                "object": {"key": [{"prefix": self.key_prefix}]},
            },
        }
