from rtd.detector.backends.base import InferenceBackend
from rtd.detector.backends.deadline import with_deadline
from rtd.detector.backends.onnx_backend import OnnxRuntimeBackend

__all__ = ["InferenceBackend", "OnnxRuntimeBackend", "with_deadline"]
