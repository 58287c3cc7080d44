class BackendUnavailable(RuntimeError):
    """Raised when a requested inference runtime cannot run in this environment."""


class ModelLoadError(RuntimeError):
    """Raised when model files are missing or unsupported."""


class InferenceFailure(RuntimeError):
    """Raised when the inference call fails or exceeds its deadline."""


class MalformedOutput(ValueError):
    """Raised when a raw output tensor does not fit the expected candidate layout."""


class ConfigurationError(ValueError):
    """Raised at startup for settings that can never produce valid detections."""


class FrameDecodeError(ValueError):
    """Raised when a frame payload cannot be decoded into an image."""
