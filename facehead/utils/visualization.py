"""
Plotly preview of a head assembly.

Plotly meshes have no texture support, so the face texture is baked into
per-vertex colours by sampling it at each vertex UV.
"""

import numpy as np
import plotly.graph_objects as go

from facehead.core.models import HeadAssembly, HeadMesh


def _rgb_strings(colors: np.ndarray) -> list[str]:
    return [f'rgb({c[0]},{c[1]},{c[2]})' for c in colors]


def head_vertex_colors(head: HeadMesh) -> np.ndarray:
    """
    RGB uint8 colour per head vertex.

    Face vertices (group 0) take the texture pixel under their UV, shell
    vertices take the skin tone.
    """
    geometry = head.geometry
    skin = np.array([int(round(c * 255)) for c in head.skin_tone], dtype=np.uint8)
    colors = np.tile(skin, (geometry.vertex_count, 1))

    texture = head.texture
    if texture is None:
        return colors

    face_group = geometry.groups[0]
    face_tris = geometry.indices[face_group.start:face_group.start + face_group.count]
    face_vertices = np.unique(face_tris)

    h, w = texture.shape[:2]
    uv = geometry.uvs[face_vertices]
    px = np.clip((uv[:, 0] * w).astype(int), 0, w - 1)
    py = np.clip(((1 - uv[:, 1]) * h).astype(int), 0, h - 1)
    colors[face_vertices] = texture[py, px, :3]

    return colors


def assembly_to_plotly_data(assembly: HeadAssembly) -> list[dict]:
    """
    Convert an assembly to Plotly Mesh3d keyword dicts in root space.

    The head comes first, followed by one dict per headwear sub-mesh.
    """
    positions = assembly.head_positions()
    indices = assembly.head.geometry.indices

    traces = [{
        'name': 'head',
        'x': positions[:, 0],
        'y': positions[:, 1],
        'z': positions[:, 2],
        'i': indices[:, 0],
        'j': indices[:, 1],
        'k': indices[:, 2],
        'vertexcolor': _rgb_strings(head_vertex_colors(assembly.head)),
    }]

    color = assembly.headwear.material.hex_color
    for part in assembly.headwear_parts():
        traces.append({
            'name': part.name,
            'x': part.vertices[:, 0],
            'y': part.vertices[:, 1],
            'z': part.vertices[:, 2],
            'i': part.faces[:, 0],
            'j': part.faces[:, 1],
            'k': part.faces[:, 2],
            'color': color,
        })

    return traces


def create_assembly_figure(assembly: HeadAssembly, title: str = 'Head Assembly') -> go.Figure:
    """Interactive 3D figure of the head and its headwear."""
    fig = go.Figure()

    for trace in assembly_to_plotly_data(assembly):
        fig.add_trace(go.Mesh3d(flatshading=False, hoverinfo='skip', **trace))

    fig.update_layout(
        title=title,
        scene=dict(
            xaxis=dict(showgrid=False, showticklabels=False, title=''),
            yaxis=dict(showgrid=False, showticklabels=False, title=''),
            zaxis=dict(showgrid=False, showticklabels=False, title=''),
            aspectmode='data',
            camera=dict(
                eye=dict(x=0, y=0, z=2),  # Front view, +Z faces the viewer
                up=dict(x=0, y=1, z=0),
            ),
            dragmode='orbit',
        ),
        height=700,
        margin=dict(l=0, r=0, t=40, b=0),
    )

    return fig
