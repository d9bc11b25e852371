import argparse
import sys

from utils.regions import region_help

SSM_USAGE = """Usage:
  ssm <region>                                       List instances in a region
  ssm [<region>] <instance-id>                       Start an interactive session
  ssm exec <region> <instance-id> "<command>"        Run a command on one instance
  ssm exec-tagged <region> <tag-key> <tag-value> "<command>"
                                                     Run a command on every tagged instance
  ssm check                                          Check dependencies and credentials
  ssm install                                        Show installation instructions
  ssm version                                        Show version
  ssm help                                           Show this help

Options (-p, --interval, --max-attempts, --timeout, --debug, --log-file)
go before the subcommand; everything after it is passed through as-is.
"""

EXEC_USAGE = 'Usage: ssm exec <region> <instance-id> "<command>"'
EXEC_TAGGED_USAGE = 'Usage: ssm exec-tagged <region> <tag-key> <tag-value> "<command>"'


class ExitOneArgumentParser(argparse.ArgumentParser):
    """argparse reports bad usage with exit code 2; this tool always uses 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"❌ERROR: {message}\n")


def build_ssm_parser():
    parser = ExitOneArgumentParser(
        prog="ssm",
        description="🛠️ ssm: AWS SSM Session Manager and Run Command made short",
        formatter_class=argparse.RawTextHelpFormatter,
        usage=argparse.SUPPRESS,
        epilog=SSM_USAGE + "\nRegion codes:\n" + region_help() + """

Examples:
  ssm cac1
  ssm i-0123456789abcdef0
  ssm use1 i-0123456789abcdef0
  ssm exec cac1 i-0123456789abcdef0 "uptime"
  ssm exec-tagged use1 Role web "systemctl status nginx"
"""
    )

    parser.add_argument(
        "words",
        metavar="ARGS",
        nargs=argparse.REMAINDER,
        help="Subcommand and its arguments, a region code, and/or an instance ID.\n"
             "Everything from here on is taken literally, so options go first\n"
             "and an unquoted command such as: exec cac1 i-... ls -la works.",
    )

    parser.add_argument(
        "-p", "--profile",
        help="AWS named profile to use (defaults to config / AWS_PROFILE / default chain)",
        required=False
    )

    parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between command status polls (default: 2)",
        required=False
    )

    parser.add_argument(
        "--max-attempts",
        type=int,
        help="Maximum number of status polls before giving up (default: 60)",
        required=False
    )

    parser.add_argument(
        "--timeout",
        type=float,
        help="Stop polling after this many seconds, even below --max-attempts",
        required=False
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show debug logging on stderr",
    )

    parser.add_argument(
        "--log-file",
        help="Append debug logs to this file",
        required=False
    )

    return parser


def build_authaws_parser():
    parser = ExitOneArgumentParser(
        prog="authaws",
        description="🔐 authaws: log in to AWS SSO and verify the resulting credentials",
        formatter_class=argparse.RawTextHelpFormatter,
        epilog="""Examples:
  authaws                 Log in with the configured/default profile
  authaws my-sso-profile  Log in with a specific profile
  authaws check           Show dependency status and current identity
  authaws version         Show version
"""
    )

    parser.add_argument(
        "target",
        metavar="PROFILE|check|version",
        nargs="?",
        default=None,
        help="Profile to log in with, or one of the commands 'check' / 'version'",
    )

    parser.add_argument(
        "-r", "--region",
        help="Region code or name used for the credential check (default: cac1)",
        required=False
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show debug logging on stderr",
    )

    parser.add_argument(
        "--log-file",
        help="Append debug logs to this file",
        required=False
    )

    return parser
