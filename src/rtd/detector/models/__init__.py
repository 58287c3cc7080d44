from rtd.detector.models.model_spec import ModelSpec

__all__ = ["ModelSpec"]
