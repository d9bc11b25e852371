import subprocess

import boto3
import botocore
import botocore.exceptions

from utils.errors import (
    AuthenticationError,
    AwsApiError,
    CommandSubmissionError,
    NoInstancesFoundError,
    SessionError,
)
from utils.logger import get_logger
from utils.poller import AWS_ERRORS, CommandInvocation
from utils.targets import InstanceTarget

logger = get_logger("ec2")

RUN_SHELL_DOCUMENT = "AWS-RunShellScript"
# send_command accepts at most this many InstanceIds per request
MAX_INSTANCE_IDS = 50

CREDENTIAL_ERRORS = (
    botocore.exceptions.NoCredentialsError,
    botocore.exceptions.UnauthorizedSSOTokenError,
    botocore.exceptions.SSOTokenLoadError,
    botocore.exceptions.TokenRetrievalError,
    botocore.exceptions.CredentialRetrievalError,
)


def _tag_value(instance: dict, key: str) -> str | None:
    for tag in instance.get("Tags", []):
        if tag["Key"] == key:
            return tag["Value"]
    return None


class EC2Client:
    def __init__(self, region: str, profile: str | None = None, session=None):
        """
        Initializes an EC2Client bound to one region.

        The region is fixed for the lifetime of the client; every EC2, SSM and
        STS call and every spawned 'aws' process uses it.

        Parameters:
        ----------
        region : str
            Full AWS region name, e.g. 'ca-central-1'.

        profile : str, optional
            AWS CLI profile name. When omitted the default credential chain is used.

        session : boto3.session.Session, optional
            Pre-built session, mostly for tests.

        Raises:
        ------
        AuthenticationError:
            If the profile does not exist in the AWS configuration.
        """
        self.region = region
        self.profile = profile
        if session is None:
            try:
                session = boto3.session.Session(profile_name=profile, region_name=region)
            except botocore.exceptions.ProfileNotFound:
                raise AuthenticationError(
                    f"Profile {profile} not found. Please check your AWS configuration."
                )
        self.session = session

        self.ec2 = self.session.client("ec2", region_name=self.region)
        self.ssm = self.session.client("ssm", region_name=self.region)
        self.sts = self.session.client("sts", region_name=self.region)

    def verify_credentials(self) -> dict:
        """
        Checks that usable AWS credentials are available.

        :return: The STS caller identity (Account, Arn, UserId).
        """
        try:
            identity = self.sts.get_caller_identity()
        except CREDENTIAL_ERRORS as e:
            raise AuthenticationError(
                f"AWS credentials are missing or expired ({e}). Run 'authaws' to log in."
            ) from e
        except botocore.exceptions.ClientError as e:
            raise AuthenticationError(f"AWS credentials are not valid: {e}") from e
        except botocore.exceptions.BotoCoreError as e:
            raise AwsApiError(f"Could not reach AWS STS in {self.region}: {e}") from e
        logger.debug("Authenticated as %s", identity.get("Arn"))
        return identity

    def _describe(self, **kwargs) -> list[dict]:
        paginator = self.ec2.get_paginator("describe_instances")
        instances = []
        for page in paginator.paginate(**kwargs):
            for reservation in page.get("Reservations", []):
                instances.extend(reservation.get("Instances", []))
        return instances

    def list_instances(self) -> list[dict]:
        """
        Retrieve all EC2 instances in the client's region.

        :return: One summary dict per instance, sorted by Name tag.
        """
        try:
            instances = self._describe()
        except AWS_ERRORS as e:
            raise AwsApiError(f"Failed to list instances in {self.region}: {e}") from e

        rows = []
        for instance in instances:
            rows.append({
                "Name": _tag_value(instance, "Name") or "N/A",
                "InstanceId": instance["InstanceId"],
                "State": instance.get("State", {}).get("Name", "unknown"),
                "PrivateIpAddress": instance.get("PrivateIpAddress", "-"),
                "Platform": instance.get("PlatformDetails") or instance.get("Platform") or "Linux/UNIX",
            })
        rows.sort(key=lambda row: (row["Name"].lower(), row["InstanceId"]))
        return rows

    def get_instance_ids_by_tag(self, key: str, value: str) -> list[str]:
        """
        Returns the IDs of running instances whose tag `key` equals `value`.
        """
        instances = self._describe(
            Filters=[
                {"Name": f"tag:{key}", "Values": [value]},
                {"Name": "instance-state-name", "Values": ["running"]},
            ]
        )
        return [instance["InstanceId"] for instance in instances]

    def get_instance_names(self, instance_ids: list[str]) -> dict[str, str | None]:
        """
        Returns the Name tag of each given instance, in one describe call.

        Lookup failures only cost the names, never the command output.
        """
        if not instance_ids:
            return {}
        try:
            instances = self._describe(InstanceIds=instance_ids)
        except AWS_ERRORS as e:
            logger.debug("Could not look up instance names: %s", e)
            return {}
        return {instance["InstanceId"]: _tag_value(instance, "Name") for instance in instances}

    def instance_exists(self, instance_id: str) -> bool:
        try:
            return bool(self._describe(InstanceIds=[instance_id]))
        except botocore.exceptions.ClientError as e:
            if e.response.get("Error", {}).get("Code", "").startswith("InvalidInstanceID"):
                return False
            raise AwsApiError(f"Failed to look up instance {instance_id}: {e}") from e
        except botocore.exceptions.BotoCoreError as e:
            raise AwsApiError(f"Failed to look up instance {instance_id}: {e}") from e

    def connect_to_instance(self, instance_id: str) -> None:
        """
        Connects to an EC2 instance using AWS SSM Session Manager.

        :param instance_id: The ID of the EC2 instance to connect to.
        """
        cmd = [
            "aws", "ssm", "start-session",
            "--target", instance_id,
            "--region", self.region,
        ]
        if self.profile:
            cmd += ["--profile", self.profile]

        print(f"🔗 Connecting to instance {instance_id} via SSM...")
        logger.debug("Running: %s", cmd)
        try:
            subprocess.run(cmd, check=True)
        except subprocess.CalledProcessError as e:
            raise SessionError(f"Failed to start session with instance {instance_id}.") from e
        print("✅ Session ended successfully.")

    def get_managed_instance_ids(self, instance_ids: list[str]) -> list[str]:
        """
        Returns the subset of instance_ids registered with SSM, in input order.

        Instances without a running SSM agent can't receive Run Command.
        """
        paginator = self.ssm.get_paginator("describe_instance_information")
        managed = set()
        for start in range(0, len(instance_ids), MAX_INSTANCE_IDS):
            chunk = instance_ids[start:start + MAX_INSTANCE_IDS]
            for page in paginator.paginate(Filters=[{"Key": "InstanceIds", "Values": chunk}]):
                managed.update(info["InstanceId"] for info in page.get("InstanceInformationList", []))
        return [instance_id for instance_id in instance_ids if instance_id in managed]

    def send_command(self, target: InstanceTarget, command: str) -> CommandInvocation:
        """
        Sends a shell command to the target using the AWS-RunShellScript document.

        Tag targets are resolved to running, SSM-managed instances first, and the
        command is sent to exactly those IDs, so the set that gets polled is the
        set SSM runs on. An empty match is reported before anything runs.

        :param target: A single instance or a tag key/value.
        :param command: The shell command to run.
        :return: The submitted invocation.
        """
        try:
            if target.is_tag:
                instance_ids = self._resolve_tag(target)
            else:
                instance_ids = [target.instance_id]

            response = self.ssm.send_command(
                InstanceIds=instance_ids,
                DocumentName=RUN_SHELL_DOCUMENT,
                Parameters={"commands": [command]},
                Comment=f"ssm exec: {command}"[:100],
            )
        except AWS_ERRORS as e:
            raise CommandSubmissionError(f"Failed to send command to {target.describe()}: {e}") from e

        command_id = response["Command"]["CommandId"]
        logger.info("Submitted command %s to %s", command_id, ", ".join(instance_ids))
        return CommandInvocation(
            command_id=command_id,
            instance_ids=tuple(instance_ids),
            command=command,
            region=self.region,
        )

    def _resolve_tag(self, target: InstanceTarget) -> list[str]:
        tag = f"{target.tag_key}={target.tag_value}"
        running = self.get_instance_ids_by_tag(target.tag_key, target.tag_value)
        if not running:
            raise NoInstancesFoundError(f"No instances found with tag {tag} in {self.region}.")

        managed = self.get_managed_instance_ids(running)
        skipped = [instance_id for instance_id in running if instance_id not in managed]
        if skipped:
            print(f"⚠️  Skipping instances not managed by SSM: {', '.join(skipped)}")
        if not managed:
            raise NoInstancesFoundError(
                f"No instances found with tag {tag} in {self.region} that are managed by SSM."
            )
        if len(managed) > MAX_INSTANCE_IDS:
            raise CommandSubmissionError(
                f"Tag {tag} matches {len(managed)} instances; at most {MAX_INSTANCE_IDS} can be targeted at once."
            )
        return managed
