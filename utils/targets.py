import re
from dataclasses import dataclass

from utils.errors import InvalidInstanceIdError, MissingArgumentError

INSTANCE_ID_PATTERN = re.compile(r"i-[a-zA-Z0-9]{8,}")


def is_valid_instance_id(value: str | None) -> bool:
    """Return True only if the whole value looks like an EC2 instance ID."""
    if not isinstance(value, str):
        return False
    return INSTANCE_ID_PATTERN.fullmatch(value) is not None


@dataclass(frozen=True)
class InstanceTarget:
    """
    What a command is sent to: one instance, or every instance carrying a tag.

    Exactly one of instance_id or (tag_key, tag_value) is set.
    """
    instance_id: str | None = None
    tag_key: str | None = None
    tag_value: str | None = None

    @classmethod
    def for_instance(cls, instance_id: str) -> "InstanceTarget":
        if not is_valid_instance_id(instance_id):
            raise InvalidInstanceIdError(instance_id)
        return cls(instance_id=instance_id)

    @classmethod
    def for_tag(cls, key: str, value: str) -> "InstanceTarget":
        if not key or not value:
            raise MissingArgumentError("Both a tag key and a tag value are required.")
        return cls(tag_key=key, tag_value=value)

    @property
    def is_tag(self) -> bool:
        return self.instance_id is None

    def describe(self) -> str:
        if self.is_tag:
            return f"tag {self.tag_key}={self.tag_value}"
        return f"instance {self.instance_id}"
