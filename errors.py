class DevHttpsError(Exception):
    pass

class InvalidSubject(DevHttpsError, ValueError):
    pass

class InvalidValidity(DevHttpsError, ValueError):
    pass

class UnsupportedAlgorithm(DevHttpsError):
    pass

class EntropyError(DevHttpsError):
    pass

class EncodingError(DevHttpsError):
    pass

class MalformedPem(DevHttpsError, ValueError):
    pass

class ConfigError(DevHttpsError):
    pass
