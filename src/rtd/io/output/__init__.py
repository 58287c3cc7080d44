from rtd.io.output.events import JsonEventSink, result_event

__all__ = ["JsonEventSink", "result_event"]
