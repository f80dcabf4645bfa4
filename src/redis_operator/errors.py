"""Error taxonomy for the Redis cluster operator."""

ALREADY_EXISTS_PHRASE = "already exists"


class RedisOperatorError(Exception):
    """Base class for operator errors."""


class PlatformQueryError(RedisOperatorError):
    """A list call against the platform API failed."""

    def __init__(self, namespace: str, labels: dict[str, str], reason: str):
        self.namespace = namespace
        self.labels = dict(labels)
        self.reason = reason
        selector = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        super().__init__(f"failed to list pods in {namespace} ({selector}): {reason}")


class ResourceAlreadyExistsError(RedisOperatorError):
    """Create was rejected because a resource with the same name exists."""

    def __init__(self, kind: str, name: str, message: str | None = None):
        self.kind = kind
        self.name = name
        super().__init__(message or f"{kind} {name!r} {ALREADY_EXISTS_PHRASE}")


class ResourceApplyError(RedisOperatorError):
    """Create failed for any reason other than a name collision."""

    def __init__(self, kind: str, name: str, reason: str, status: int | None = None):
        self.kind = kind
        self.name = name
        self.reason = reason
        self.status = status
        super().__init__(f"failed to create {kind} {name!r}: {reason}")


class SpecDerivationError(RedisOperatorError):
    """A resource spec could not be built for the given topology/index."""


class FrameworkError(RedisOperatorError):
    """An external tool driven by the e2e framework failed."""

    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message)


def is_already_exists(error: BaseException) -> bool:
    """Check whether an error represents a pre-existing resource.

    Typed errors are matched first; anything else falls back to the
    platform's textual contract.
    """
    if isinstance(error, ResourceAlreadyExistsError):
        return True
    return ALREADY_EXISTS_PHRASE in str(error)
