class ZtiError(Exception):
    """Base class for every operator-facing failure. The message is shown as-is."""


class InvalidRegionError(ZtiError):
    def __init__(self, code: str):
        super().__init__(f"Invalid region code '{code}'.")
        self.code = code


class InvalidInstanceIdError(ZtiError):
    def __init__(self, instance_id: str):
        super().__init__(f"Invalid instance ID '{instance_id}'. Expected format: i-xxxxxxxx")
        self.instance_id = instance_id


class MissingArgumentError(ZtiError):
    pass


class NoInstancesFoundError(ZtiError):
    pass


class CommandSubmissionError(ZtiError):
    pass


class PollingTimeoutError(ZtiError):
    def __init__(self, command_id: str, pending: list[str]):
        super().__init__(
            f"Command {command_id} did not complete on: {', '.join(pending)}"
        )
        self.command_id = command_id
        self.pending = pending


class MissingDependencyError(ZtiError):
    def __init__(self, names: list[str]):
        super().__init__(
            f"Missing required tools: {', '.join(names)}. Run 'ssm install' for instructions."
        )
        self.names = names


class AuthenticationError(ZtiError):
    pass


class SessionError(ZtiError):
    pass


class InvalidSettingError(ZtiError):
    pass


class AwsApiError(ZtiError):
    pass
