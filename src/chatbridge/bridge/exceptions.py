"""
Bridge exceptions for chatbridge.

Failures are classified so each layer knows whether to recover locally
(media fallback, name suffix retry), surface to the operator, or log and
move on.
"""


class BridgeError(Exception):
    """Base exception for bridge errors."""

    pass


class StoreUnavailable(BridgeError):
    """The persisted bridge document cannot be read or written."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class MappingNotFound(BridgeError):
    """No mapping exists for the given conversation or channel."""

    def __init__(self, conversation_id: str):
        super().__init__(f"No mapping for {conversation_id}")
        self.conversation_id = conversation_id


class MediaDownloadFailed(BridgeError):
    """Fetching the bytes of an attachment failed."""

    pass


class MediaUploadFailed(BridgeError):
    """Delivering an attachment to the other platform failed."""

    pass


class ChannelNameCollision(BridgeError):
    """The requested channel name is already taken."""

    def __init__(self, name: str):
        super().__init__(f"Channel name already taken: {name}")
        self.name = name


class ChannelCreateFailed(BridgeError):
    """Channel creation failed for a reason other than a name collision."""

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


class InviteFailed(BridgeError):
    """Inviting the reviewer group to a channel failed."""

    pass


class SelfJoinFailed(BridgeError):
    """The bot could not join a channel it created."""

    pass


class ProvisioningUsageError(BridgeError):
    """Provisioning was invoked with an index outside the current listing."""

    def __init__(self, index: int, available: int):
        if available:
            message = (
                f"Invalid index {index}. Use a number between 0 and {available - 1} "
                "from the last `/view` listing."
            )
        else:
            message = "There is no current listing. Run `/view` first."
        super().__init__(message)
        self.index = index
        self.available = available
