"""
Flat-buffer serialization of a reconstructed head.

Buffers use the dtypes a GPU upload expects (float32 positions and UVs,
uint32 indices) and the texture is stored as a JPEG blob.
"""

import base64
import logging
from dataclasses import dataclass

import numpy as np

from facehead.core.models import HeadMesh
from facehead.utils.image_utils import encode_image_to_bytes

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image/jpeg;base64,"


@dataclass
class SerializedHead:
    positions: np.ndarray       # flat float32, 3 per vertex
    uvs: np.ndarray             # flat float32, 2 per vertex
    indices: np.ndarray         # flat uint32, 3 per triangle
    texture_jpeg: bytes
    groups: list[tuple[int, int, int]]   # (start index, index count, material)

    def to_dict(self) -> dict:
        """JSON-safe form with base64 buffers and a JPEG data URL."""
        return {
            "positions": base64.b64encode(self.positions.tobytes()).decode("ascii"),
            "uvs": base64.b64encode(self.uvs.tobytes()).decode("ascii"),
            "indices": base64.b64encode(self.indices.tobytes()).decode("ascii"),
            "groups": [list(group) for group in self.groups],
            "texture": DATA_URL_PREFIX + base64.b64encode(self.texture_jpeg).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SerializedHead":
        texture = data["texture"]
        if texture.startswith(DATA_URL_PREFIX):
            texture = texture[len(DATA_URL_PREFIX):]

        return cls(
            positions=np.frombuffer(base64.b64decode(data["positions"]), dtype=np.float32),
            uvs=np.frombuffer(base64.b64decode(data["uvs"]), dtype=np.float32),
            indices=np.frombuffer(base64.b64decode(data["indices"]), dtype=np.uint32),
            texture_jpeg=base64.b64decode(texture),
            groups=[tuple(group) for group in data["groups"]],
        )


def serialize_head_mesh(head: HeadMesh, jpeg_quality: int = 85) -> SerializedHead:
    """
    Flatten a HeadMesh for transport.

    Group ranges are expressed in index units (3 per triangle), matching
    how indexed draw calls address them.
    """
    geometry = head.geometry

    groups = [
        (group.start * 3, group.count * 3, group.material_index)
        for group in geometry.groups
    ]

    serialized = SerializedHead(
        positions=np.ascontiguousarray(geometry.positions, dtype=np.float32).ravel(),
        uvs=np.ascontiguousarray(geometry.uvs, dtype=np.float32).ravel(),
        indices=np.ascontiguousarray(geometry.indices, dtype=np.uint32).ravel(),
        texture_jpeg=encode_image_to_bytes(head.texture, format="JPEG", quality=jpeg_quality),
        groups=groups,
    )

    logger.debug(
        "Serialized head: %d vertices, %d indices, %d byte texture",
        geometry.vertex_count, len(serialized.indices), len(serialized.texture_jpeg),
    )
    return serialized
