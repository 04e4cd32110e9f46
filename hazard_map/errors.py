# Error taxonomy for the hazard map core. Nothing here is allowed to escape
# to the surface as a crash: callers log or notify and carry on.


class HazardMapError(Exception):
    pass


class ConfigError(HazardMapError):
    pass


class PositionError(HazardMapError):
    code = 0

    def __init__(self, message="position unavailable", code=None):
        super().__init__(message)
        if code is not None:
            self.code = code


# codes follow the W3C / react-native geolocation error codes
class PositionPermissionDenied(PositionError):
    code = 1


class PositionUnavailable(PositionError):
    code = 2


class PositionTimeout(PositionError):
    code = 3


class RemoteWriteFailure(HazardMapError):
    pass


class AuthenticationFailure(HazardMapError):
    pass


class FeedError(HazardMapError):
    pass


class DialogBusy(HazardMapError):
    pass


class SettingsUnavailable(HazardMapError):
    pass
