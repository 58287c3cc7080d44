from rtd.pipeline.frame_pipeline import FramePipeline, FrameState, now_ms
from rtd.pipeline.frame_queue import LatestFrameQueue

__all__ = ["FramePipeline", "FrameState", "LatestFrameQueue", "now_ms"]
