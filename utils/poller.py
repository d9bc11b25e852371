import time
from dataclasses import dataclass, field
from typing import Any, Callable

import botocore.exceptions
from tqdm import tqdm

from utils.errors import AwsApiError, InvalidSettingError
from utils.logger import get_logger

logger = get_logger("poller")

TERMINAL_STATUSES = frozenset({
    "Success",
    "Failed",
    "TimedOut",
    "Cancelled",
    "Undeliverable",
    "Terminated",
    "DeliveryTimedOut",
    "ExecutionTimedOut",
})

DEFAULT_INTERVAL = 2.0
DEFAULT_MAX_ATTEMPTS = 60

AWS_ERRORS = (botocore.exceptions.ClientError, botocore.exceptions.BotoCoreError)


@dataclass(frozen=True)
class CommandInvocation:
    """A command submitted through SSM Run Command and the instances it targets."""
    command_id: str
    instance_ids: tuple[str, ...]
    command: str
    region: str


@dataclass
class InvocationResult:
    instance_id: str
    status: str
    stdout: str = ""
    stderr: str = ""
    response_code: int | None = None


@dataclass
class PollResult:
    command_id: str
    results: list[InvocationResult] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)

    @property
    def timed_out(self) -> bool:
        return bool(self.pending)

    @property
    def succeeded(self) -> bool:
        return not self.pending and all(r.status == "Success" for r in self.results)


def validate_poll_settings(interval, max_attempts, timeout=None) -> None:
    """Reject poll settings that would crash or never poll, whatever their source."""
    if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval < 0:
        raise InvalidSettingError(f"Poll interval must be a number of seconds >= 0, got {interval!r}.")
    if isinstance(max_attempts, bool) or not isinstance(max_attempts, int) or max_attempts < 1:
        raise InvalidSettingError(f"Max attempts must be a whole number >= 1, got {max_attempts!r}.")
    if timeout is not None and (
        isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0
    ):
        raise InvalidSettingError(f"Poll timeout must be a number of seconds > 0, got {timeout!r}.")


def poll_until(
    check: Callable[[], tuple[bool, Any]],
    interval: float,
    max_attempts: int,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    timeout: float | None = None,
) -> tuple[bool, Any]:
    """
    Call check() at a fixed interval until it reports completion.

    check() returns (done, value). Polling stops when done is True, after
    max_attempts calls, or once clock() passes start + timeout. There is no
    sleep after the final attempt.

    :return: (done, value) from the last call to check().
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    deadline = clock() + timeout if timeout is not None else None
    done, value = False, None
    for attempt in range(1, max_attempts + 1):
        done, value = check()
        if done:
            break
        if attempt == max_attempts:
            break
        if deadline is not None and clock() >= deadline:
            logger.debug("Deadline reached after %d attempts", attempt)
            break
        sleep(interval)
    return done, value


class CommandPoller:
    def __init__(
        self,
        ssm_client,
        interval: float = DEFAULT_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        timeout: float | None = None,
        show_progress: bool = True,
    ):
        validate_poll_settings(interval, max_attempts, timeout)
        self.ssm = ssm_client
        self.interval = interval
        self.max_attempts = max_attempts
        self.sleep = sleep
        self.clock = clock
        self.timeout = timeout
        self.show_progress = show_progress

    def fetch_statuses(self, command_id: str) -> dict[str, str]:
        """
        Return the current status of every instance the command was sent to.

        One batched list_command_invocations call per cycle (following pages).
        """
        statuses = {}
        kwargs = {"CommandId": command_id}
        while True:
            response = self.ssm.list_command_invocations(**kwargs)
            for invocation in response.get("CommandInvocations", []):
                status = invocation.get("Status", "Pending")
                detail = invocation.get("StatusDetails")
                # StatusDetails is more precise for delivery failures
                if detail in TERMINAL_STATUSES and status not in TERMINAL_STATUSES:
                    status = detail
                statuses[invocation["InstanceId"]] = status
            next_token = response.get("NextToken")
            if not next_token:
                return statuses
            kwargs["NextToken"] = next_token

    def fetch_output(self, command_id: str, instance_id: str, status: str) -> InvocationResult:
        """
        Collect stdout/stderr for one instance. A failed lookup is recorded on
        that instance only, so the output of the others is still shown.
        """
        try:
            response = self.ssm.get_command_invocation(
                CommandId=command_id,
                InstanceId=instance_id,
            )
        except AWS_ERRORS as e:
            logger.warning("Failed to get output from %s: %s", instance_id, e)
            return InvocationResult(
                instance_id=instance_id,
                status=status,
                stderr=f"❌ Error retrieving output: {e}",
            )

        return InvocationResult(
            instance_id=instance_id,
            status=response.get("Status", status),
            stdout=response.get("StandardOutputContent", ""),
            stderr=response.get("StandardErrorContent", ""),
            response_code=response.get("ResponseCode"),
        )

    def wait(self, invocation: CommandInvocation) -> PollResult:
        """
        Poll until every targeted instance reaches a terminal state or the
        attempt cap is hit, then collect stdout/stderr of finished instances.
        """
        targets = list(invocation.instance_ids)
        seen: dict[str, str] = {}

        bar = tqdm(
            total=len(targets),
            desc=f"⏳ {invocation.command_id[:8]}",
            leave=False,
            disable=not self.show_progress,
        )

        def check():
            try:
                statuses = self.fetch_statuses(invocation.command_id)
            except AWS_ERRORS as e:
                raise AwsApiError(f"Failed to query command status: {e}") from e

            finished_before = sum(1 for s in seen.values() if s in TERMINAL_STATUSES)
            for instance_id in targets:
                seen[instance_id] = statuses.get(instance_id, "Pending")
            finished = [i for i in targets if seen[i] in TERMINAL_STATUSES]
            bar.update(len(finished) - finished_before)
            logger.debug("Command %s: %d/%d finished", invocation.command_id, len(finished), len(targets))
            return len(finished) == len(targets), finished

        try:
            poll_until(
                check,
                interval=self.interval,
                max_attempts=self.max_attempts,
                sleep=self.sleep,
                clock=self.clock,
                timeout=self.timeout,
            )
        finally:
            bar.close()

        result = PollResult(command_id=invocation.command_id)
        for instance_id in targets:
            status = seen.get(instance_id, "Pending")
            if status in TERMINAL_STATUSES:
                result.results.append(self.fetch_output(invocation.command_id, instance_id, status))
            else:
                result.pending.append(instance_id)

        if result.pending:
            logger.warning("Instances still pending for %s: %s", invocation.command_id, ", ".join(result.pending))
        return result


def format_results(result: PollResult, names: dict[str, str | None] | None = None) -> str:
    """
    Render command output grouped per instance.

    :param result: The outcome of CommandPoller.wait().
    :param names: Optional instance ID -> Name tag mapping for the headers.
    """
    names = names or {}
    blocks = []
    for r in result.results:
        name = names.get(r.instance_id)
        header = f"📦 Output from {r.instance_id}"
        if name:
            header += f" | {name}"
        header += f" [{r.status}]"
        if r.response_code is not None:
            header += f" (exit {r.response_code})"

        lines = [header, "--- STDOUT ---", r.stdout.rstrip("\n") or "(empty)"]
        lines += ["--- STDERR ---", r.stderr.rstrip("\n") or "(empty)"]
        blocks.append("\n".join(lines))

    if result.pending:
        blocks.append(f"⌛ No result (timed out) from: {', '.join(result.pending)}")
    return "\n\n".join(blocks)
