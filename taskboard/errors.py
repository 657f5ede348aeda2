class ConfigError(RuntimeError):
    """Required configuration (credential, endpoint) is missing."""


class DatastoreError(RuntimeError):
    """A datastore request failed or returned an unusable result."""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class BusyError(RuntimeError):
    """The same action is already in flight."""

    def __init__(self, action):
        super().__init__(f'{action} is already in progress')
        self.action = action


class ChatError(RuntimeError):
    pass


class ChatConfigError(ChatError):
    pass


class ChatUpstreamError(ChatError):
    def __init__(self, message, detail=''):
        super().__init__(message)
        self.detail = detail
