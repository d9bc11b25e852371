import subprocess
import sys

from cli import build_authaws_parser
from config import VERSION, get_settings, update_last_used
from utils.deps import check_dependencies, require_dependencies
from utils.ec2 import EC2Client
from utils.errors import AuthenticationError, AwsApiError, InvalidRegionError, ZtiError
from utils.logger import get_logger, setup_logging
from utils.regions import INVALID_REGION, REGIONS, resolve_region

logger = get_logger("authaws")


def region_name(value: str) -> str:
    """Accept either a short code ('cac1') or a full region name ('ca-central-1')."""
    if value in REGIONS.values():
        return value
    region = resolve_region(value)
    if region == INVALID_REGION:
        raise InvalidRegionError(value)
    return region


def sso_login(profile: str) -> None:
    """
    Runs the AWS CLI SSO login flow for the profile (opens a browser).

    :param profile: The profile name to use for login.
    """
    require_dependencies(("aws",))
    cmd = ["aws", "sso", "login", "--profile", profile]
    logger.debug("Running: %s", cmd)
    try:
        subprocess.run(cmd, check=True)
    except subprocess.CalledProcessError as e:
        raise AuthenticationError(
            f"Something went wrong in the SSO login process for profile '{profile}'."
        ) from e


def print_identity(identity: dict, profile: str | None) -> None:
    if profile:
        print(f"👤 Profile:  {profile}")
    print(f"🏢 Account:  {identity.get('Account')}")
    print(f"🔑 Identity: {identity.get('Arn')}")


def main(argv=None, client_factory=EC2Client, login=sso_login) -> int:
    parser = build_authaws_parser()
    args = parser.parse_args(argv)
    setup_logging(args.debug, args.log_file)

    try:
        settings = get_settings()
        region = region_name(args.region or settings["default_region"])

        if args.target == "version":
            print(f"authaws {VERSION}")
            return 0

        if args.target == "check":
            ok = True
            for dep in check_dependencies(("aws",)):
                if dep.installed:
                    print(f"✅ {dep.name}: {dep.path}")
                else:
                    ok = False
                    print(f"❌ {dep.name}: not installed (run 'ssm install')")
            try:
                identity = client_factory(region=region, profile=settings["profile"]).verify_credentials()
            except (AuthenticationError, AwsApiError) as e:
                print(f"❌ {e}")
                return 1
            print_identity(identity, settings["profile"])
            return 0 if ok else 1

        profile = args.target or settings["profile"] or "default"
        print(f"🔄 Logging in to AWS SSO with profile '{profile}'...")
        login(profile)

        identity = client_factory(region=region, profile=profile).verify_credentials()
        print("✅ AWS credentials are valid.")
        print_identity(identity, profile)
        print(f"\nUse it with: export AWS_PROFILE={profile}")
        update_last_used(profile=profile)
        return 0

    except ZtiError as e:
        logger.debug("Failed: %r", e)
        print(f"❌ERROR: {e}", file=sys.stderr)
        return 1


def run():
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n❌ Cancelled by user...")
        sys.exit(1)


if __name__ == "__main__":
    run()
