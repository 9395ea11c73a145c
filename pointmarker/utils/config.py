"""
Default configuration for the editor core.

Values mirror the canvas behaviour of the original web editor and can be
overridden with ``POINTMARKER_<SECTION>__<KEY>`` environment variables.
"""

import os
from typing import Dict, Optional

from easydict import EasyDict as edict

from .env import load_cfg_from_env


def get_default_cfg() -> edict:
    cfg = edict()

    cfg.viewport = edict()
    cfg.viewport.min_scale = 1.0
    cfg.viewport.max_scale = 5.0
    cfg.viewport.zoom_step = 0.2
    cfg.viewport.pan_step = 50

    # Hit radii are canvas units and are not adjusted for zoom
    cfg.hit = edict()
    cfg.hit.spot_radius = 10.0
    cfg.hit.point_radius = 8.0
    cfg.hit.waypoint_radius = 10.0
    cfg.hit.vertex_radius = 10.0
    cfg.hit.area_label_radius = 20.0

    cfg.drag = edict()
    cfg.drag.threshold = 3.0

    cfg.render = edict()
    cfg.render.point_radius = 6
    cfg.render.spot_size = 12
    cfg.render.waypoint_radius = 5
    cfg.render.area_alpha = 0.3
    cfg.render.colormap = "tab20"

    return cfg


def get_cfg(env: Optional[Dict[str, str]] = None) -> edict:
    """Return the default config with environment overrides applied."""
    if env is None:
        env = dict(os.environ)
    return load_cfg_from_env(get_default_cfg(), env)
