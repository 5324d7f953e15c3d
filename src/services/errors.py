class ServiceError(Exception):
    pass


class RateLimitedError(ServiceError):
    pass


class VisionConfigurationError(ServiceError):
    pass


class VisionPromptError(ServiceError):
    pass


class VisionResponseError(ServiceError):
    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class FetchFailedError(ServiceError):
    pass


class NetworkTimeoutError(ServiceError):
    def __init__(self, url: str, timeout_seconds: float):
        super().__init__(f"Network timeout after {timeout_seconds}s: {url}")
        self.url = url
        self.timeout_seconds = timeout_seconds
