from rtd.detector.decoder import CandidateDecoder, TensorLayout
from rtd.detector.geometry import area, intersection_over_union
from rtd.detector.postprocess import Postprocessor
from rtd.detector.suppression import suppress, suppress_per_label

__all__ = [
    "CandidateDecoder",
    "Postprocessor",
    "TensorLayout",
    "area",
    "intersection_over_union",
    "suppress",
    "suppress_per_label",
]
