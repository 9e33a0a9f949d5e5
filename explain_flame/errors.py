"""Error types raised by the plan tooling."""


class ExplainFlameError(Exception):
    """Base class for every error the CLI reports to the operator."""


class MalformedInputError(ExplainFlameError, ValueError):
    """The plan text is not a JSON object once framing has been stripped."""

    def __init__(self, reason: str, text: str):
        self.reason = reason
        self.text = text
        super().__init__(f"Failed to parse JSON: {reason}\nInput was:\n{text}")


class EmptyResultWarning(ExplainFlameError, UserWarning):
    """No frame survived rounding, e.g. an all-zero plan."""


class RendererUnavailableError(ExplainFlameError):
    """The flame graph renderer cannot be located or started."""


class RendererFailureError(ExplainFlameError):
    """The flame graph renderer ran but did not complete successfully."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        if stderr:
            message = f"{message}\n{stderr.strip()}"
        super().__init__(message)
