"""Elysian on-device inference engine.

Keeps a catalog of local inference models, loads each one at most once under
concurrent demand, and runs pose detection, style transfer, upscaling and
portrait enhancement pipelines around ONNX Runtime sessions.
"""

__version__ = "1.0.0"
