"""Exception types raised across the status bot."""


class StatusBotError(Exception):
    pass


# === Probe failures (recovered by the retry loop) ===

class ProbeError(StatusBotError):
    """A single status probe failed."""


class UnreachableError(ProbeError):
    pass


class TruncatedResponseError(ProbeError):
    pass


class MalformedVarintError(ProbeError):
    pass


class InvalidResponseSizeError(ProbeError):
    def __init__(self, size: int):
        super().__init__(f"invalid response length: {size}")
        self.size = size


class InvalidVersionFieldError(ProbeError):
    pass


class InvalidPayloadError(ProbeError):
    """The status body was not a JSON object."""


# === Collaborator failures ===

class StorageIOError(StatusBotError):
    pass


class NotificationDeliveryError(StatusBotError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(StatusBotError):
    pass
