from __future__ import annotations

import base64
import binascii
from typing import Any

import numpy as np

from rtd.detector.errors import FrameDecodeError


def _payload_bytes(payload: Any) -> bytes:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    if isinstance(payload, str):
        # Accept both bare base64 and data URLs ("data:image/jpeg;base64,...").
        encoded = payload.split(",", 1)[1] if "," in payload else payload
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise FrameDecodeError("Frame payload is not valid base64") from exc
    raise FrameDecodeError(f"Unsupported frame payload type: {type(payload).__name__}")


def decode_image(payload: Any) -> np.ndarray:
    """Decode encoded image bytes (or an already decoded array) into BGR uint8."""
    if isinstance(payload, np.ndarray):
        image = payload
    else:
        import cv2

        data = np.frombuffer(_payload_bytes(payload), dtype=np.uint8)
        if data.size == 0:
            raise FrameDecodeError("Frame payload is empty")
        # IMREAD_COLOR drops any alpha channel.
        image = cv2.imdecode(data, cv2.IMREAD_COLOR)
        if image is None:
            raise FrameDecodeError("Frame payload could not be decoded as an image")

    if image.ndim == 2:
        image = np.repeat(image[..., None], 3, axis=2)
    elif image.ndim == 3 and image.shape[2] == 4:
        image = image[..., :3]
    if image.ndim != 3 or image.shape[2] != 3:
        raise FrameDecodeError(f"Unsupported image shape: {tuple(image.shape)}")
    return image


def to_input_tensor(image: np.ndarray, resolution: int = 640) -> np.ndarray:
    """Resize a BGR image to RxR and pack it as a 1x3xRxR RGB float tensor in [0, 1].

    The resize does not preserve aspect ratio, so normalized box
    coordinates from the model map directly onto the source frame.
    """
    import cv2

    if image.shape[0] != resolution or image.shape[1] != resolution:
        image = cv2.resize(image, (resolution, resolution), interpolation=cv2.INTER_LINEAR)
    rgb = image[..., ::-1].astype(np.float32) / 255.0
    chw = np.transpose(rgb, (2, 0, 1))
    return np.ascontiguousarray(chw[None])


def preprocess_frame(payload: Any, resolution: int = 640) -> np.ndarray:
    return to_input_tensor(decode_image(payload), resolution)
