from typing import Optional


class ChatStoreError(Exception):
    """Base class for every failure surfaced by the chat accessors."""


class NotFoundError(ChatStoreError):
    """A read found no node at `path`, or a node of the wrong shape."""

    def __init__(self, path: str, reason: Optional[str] = None):
        self.path = path
        self.reason = reason
        msg = f"nothing usable at '{path}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ConflictError(ChatStoreError):
    """A conditional write kept losing to concurrent writers."""

    def __init__(self, path: str, attempts: int):
        self.path = path
        self.attempts = attempts
        super().__init__(f"'{path}' changed under us {attempts} time(s); giving up")


class BackendError(ChatStoreError):
    """The remote document or object store rejected a call."""

    def __init__(self, operation: str, path: str):
        self.operation = operation
        self.path = path
        super().__init__(f"{operation} failed for '{path}'")


class MediaError(ChatStoreError):
    pass


class UploadFailedError(MediaError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"failed to upload '{path}'")


class DownloadUrlUnavailableError(MediaError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"no download url for '{path}'")
