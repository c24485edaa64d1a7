ExtraInfoType = dict[str, str | None]


class ClientError(Exception):
    """A request error from the repository function analyzer client."""

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None):
        msg = message
        if extra_info:
            msg += " (" + ", ".join([f"{key}: {value}" for key, value in extra_info.items() if value is not None]) + ")"
        super().__init__(msg)


class RequestError(ClientError):
    """A request error from the repository function analyzer client."""

    def __init__(self, action: str, message: str | None = None, extra_info: ExtraInfoType | None = None):
        if not extra_info:
            extra_info = {}
        super().__init__(message="A request error occured.", extra_info={"action": action, "message": message, **extra_info})


class ResourceNotFoundError(RequestError):
    """The repository, ref or file does not exist."""

    def __init__(self, action: str, resource: str | None = None, extra_info: ExtraInfoType | None = None):
        if not extra_info:
            extra_info = {}
        super().__init__(
            action=action,
            message="The resource could not be found.",
            extra_info={"resource": resource, **extra_info},
        )


class AccessDeniedError(RequestError):
    """The repository is private or the rate limit has been exceeded. GitHub does not let us tell which."""

    def __init__(self, action: str, resource: str | None = None, extra_info: ExtraInfoType | None = None):
        if not extra_info:
            extra_info = {}
        super().__init__(
            action=action,
            message="Access was denied. The repository may be private or the rate limit may have been exceeded.",
            extra_info={"resource": resource, **extra_info},
        )


class TransientTransportError(RequestError):
    """Any other transport failure. Retrying may succeed."""


class ResourceTypeMismatchError(RequestError):
    """A type mismatch error from the repository function analyzer client."""

    def __init__(self, action: str, resource: str, expected_type: type, actual_type: type):
        super().__init__(action, f"{resource}: Expected {expected_type}, got {actual_type}")


class DecodeFailureError(ClientError):
    """The file content could not be decoded to text. The file is binary or uses an unsupported encoding."""

    def __init__(self, path: str, reason: str):
        super().__init__(message="The file content could not be decoded.", extra_info={"path": path, "reason": reason})


class NoResolvableBranchError(ClientError):
    """None of the candidate branches of a repository could be listed."""

    def __init__(self, owner: str, repo: str, candidates: list[str], failures: dict[str, str] | None = None):
        super().__init__(
            message="No branch of the repository could be resolved.",
            extra_info={
                "repository": f"{owner}/{repo}",
                "candidates": ", ".join(candidates) or None,
                "failures": "; ".join(f"{name}: {reason}" for name, reason in (failures or {}).items()) or None,
            },
        )
