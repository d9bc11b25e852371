"""Builders for boto3-shaped responses used across tests"""

import botocore.exceptions

from utils.poller import CommandInvocation


def invocation(command_id="cmd-1234567890", instance_ids=("i-0123456789abcdef0",), command="uptime",
               region="ca-central-1"):
    return CommandInvocation(
        command_id=command_id,
        instance_ids=tuple(instance_ids),
        command=command,
        region=region,
    )


def client_error(code="AccessDeniedException", message="Access denied", operation="SendCommand"):
    return botocore.exceptions.ClientError(
        {"Error": {"Code": code, "Message": message}}, operation
    )


def listing(*pairs):
    """list_command_invocations response for (instance_id, status) pairs."""
    return {
        "CommandInvocations": [
            {"InstanceId": instance_id, "Status": status} for instance_id, status in pairs
        ]
    }
