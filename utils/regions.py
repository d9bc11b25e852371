from types import MappingProxyType

INVALID_REGION = "invalid"
DEFAULT_REGION_CODE = "cac1"

REGIONS = MappingProxyType({
    "cac1": "ca-central-1",
    "caw1": "ca-west-1",
    "use1": "us-east-1",
    "use2": "us-east-2",
    "usw1": "us-west-1",
    "usw2": "us-west-2",
})


def resolve_region(code: str | None) -> str:
    """
    Translate a short region code into the AWS region name.

    :param code: Short code such as 'cac1'.
    :return: The region name, or INVALID_REGION if the code is unknown.
    """
    if not isinstance(code, str):
        return INVALID_REGION
    return REGIONS.get(code, INVALID_REGION)


def is_region_code(value: str | None) -> bool:
    return resolve_region(value) != INVALID_REGION


def region_help() -> str:
    return "\n".join(f"  {code:<6} {name}" for code, name in REGIONS.items())
