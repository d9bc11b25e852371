import sys

from cli import EXEC_TAGGED_USAGE, EXEC_USAGE, SSM_USAGE, build_ssm_parser
from config import VERSION, get_settings, update_last_used
from utils.deps import check_dependencies, install_instructions, require_dependencies
from utils.ec2 import EC2Client
from utils.errors import (
    AuthenticationError,
    InvalidInstanceIdError,
    InvalidRegionError,
    NoInstancesFoundError,
    PollingTimeoutError,
    ZtiError,
)
from utils.logger import get_logger, setup_logging
from utils.poller import CommandPoller, format_results, validate_poll_settings
from utils.regions import INVALID_REGION, is_region_code, resolve_region
from utils.targets import InstanceTarget, is_valid_instance_id

logger = get_logger("ssm")


def region_from_code(code: str) -> str:
    region = resolve_region(code)
    if region == INVALID_REGION:
        raise InvalidRegionError(code)
    return region


def print_instances(instances: list[dict], region: str) -> None:
    if not instances:
        print(f"❌ No instances found in {region}.")
        return

    print(f"🔎 Instances in {region}:\n")
    name_width = max(len("Name"), *(len(i["Name"]) for i in instances))
    print(f"{'Name':<{name_width}}  {'InstanceId':<20}  {'State':<10}  {'PrivateIp':<15}  Platform")
    for inst in instances:
        print(
            f"{inst['Name']:<{name_width}}  {inst['InstanceId']:<20}  {inst['State']:<10}  "
            f"{inst['PrivateIpAddress']:<15}  {inst['Platform']}"
        )


def run_check(client_factory, profile: str | None, region: str) -> int:
    ok = True
    print("🔍 Checking local dependencies...")
    for dep in check_dependencies():
        if dep.installed:
            print(f"✅ {dep.name}: {dep.path}" + (f" ({dep.version})" if dep.version else ""))
        else:
            ok = False
            print(f"❌ {dep.name}: not installed")

    print("\n🔍 Checking AWS credentials...")
    try:
        identity = client_factory(region=region, profile=profile).verify_credentials()
    except AuthenticationError as e:
        ok = False
        print(f"❌ {e}")
    else:
        print(f"✅ Account: {identity.get('Account')}")
        print(f"✅ Identity: {identity.get('Arn')}")

    if not ok:
        print("\nRun 'ssm install' for installation instructions or 'authaws' to log in.")
    return 0 if ok else 1


def run_session(client_factory, profile: str | None, region: str, instance_id: str) -> int:
    if not is_valid_instance_id(instance_id):
        raise InvalidInstanceIdError(instance_id)
    require_dependencies()

    client = client_factory(region=region, profile=profile)
    client.verify_credentials()
    if not client.instance_exists(instance_id):
        raise NoInstancesFoundError(f"Instance {instance_id} not found in {region}.")

    update_last_used(region=region, instance_id=instance_id, profile=profile)
    client.connect_to_instance(instance_id)
    return 0


def run_exec(client, poller, target: InstanceTarget, command: str) -> int:
    """
    Submit a command, wait for it to finish everywhere, and print the output.

    :return: 0 when every targeted instance reports Success, otherwise 1.
    """
    invocation = client.send_command(target, command)
    print(f"Running command: {command}")
    print(f"Command ID: {invocation.command_id}")
    print(f"On instances: {', '.join(invocation.instance_ids)}")
    print("")
    print("🔄 Waiting for command to finish on instances...")

    result = poller.wait(invocation)
    names = client.get_instance_names(list(invocation.instance_ids))
    print("")
    print(format_results(result, names))
    print("")

    if result.timed_out:
        raise PollingTimeoutError(invocation.command_id, result.pending)

    if not result.succeeded:
        failed = [r.instance_id for r in result.results if r.status != "Success"]
        print(f"❌ Command failed on: {', '.join(failed)}", file=sys.stderr)
        return 1

    print("✅ Command completed successfully.")
    if not target.is_tag:
        update_last_used(region=invocation.region, instance_id=target.instance_id)
    return 0


def main(argv=None, client_factory=EC2Client, poller_factory=CommandPoller) -> int:
    parser = build_ssm_parser()
    args = parser.parse_args(argv)
    setup_logging(args.debug, args.log_file)

    words = args.words

    try:
        settings = get_settings()
        profile = args.profile or settings["profile"]
        interval = args.interval if args.interval is not None else settings["poll_interval"]
        max_attempts = args.max_attempts if args.max_attempts is not None else settings["max_attempts"]
        timeout = args.timeout if args.timeout is not None else settings["poll_timeout"]

        if not words or words[0] == "help":
            parser.print_help()
            return 0

        action, rest = words[0], words[1:]

        if action == "version":
            print(f"ssm {VERSION}")
            return 0

        if action == "install":
            print(install_instructions())
            return 0

        if action == "check":
            return run_check(client_factory, profile, region_from_code(settings["default_region"]))

        if action == "exec":
            if len(rest) < 3:
                print(EXEC_USAGE, file=sys.stderr)
                return 1
            region = region_from_code(rest[0])
            target = InstanceTarget.for_instance(rest[1])
            command = " ".join(rest[2:])
        elif action == "exec-tagged":
            if len(rest) < 4:
                print(EXEC_TAGGED_USAGE, file=sys.stderr)
                return 1
            region = region_from_code(rest[0])
            target = InstanceTarget.for_tag(rest[1], rest[2])
            command = " ".join(rest[3:])
        else:
            return dispatch_positional(client_factory, profile, settings, words)

        validate_poll_settings(interval, max_attempts, timeout)

        client = client_factory(region=region, profile=profile)
        client.verify_credentials()
        poller = poller_factory(client.ssm, interval=interval, max_attempts=max_attempts, timeout=timeout)
        return run_exec(client, poller, target, command)

    except ZtiError as e:
        logger.debug("Failed: %r", e)
        print(f"❌ERROR: {e}", file=sys.stderr)
        return 1


def dispatch_positional(client_factory, profile, settings, words) -> int:
    """ssm <region> | ssm <region> <instance-id> | ssm <instance-id>"""
    first = words[0]

    if is_region_code(first):
        region = resolve_region(first)
        if len(words) == 1:
            client = client_factory(region=region, profile=profile)
            client.verify_credentials()
            print_instances(client.list_instances(), region)
            return 0
        if len(words) == 2:
            return run_session(client_factory, profile, region, words[1])

    elif len(words) == 1 and first.startswith("i-"):
        region = region_from_code(settings["default_region"])
        return run_session(client_factory, profile, region, first)

    elif len(words) <= 2:
        if first.startswith("i-"):
            raise InvalidInstanceIdError(first)
        raise InvalidRegionError(first)

    print(SSM_USAGE, file=sys.stderr)
    return 1


def run():
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n❌ Cancelled by user...")
        sys.exit(1)


if __name__ == '__main__':
    run()
