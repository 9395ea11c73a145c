import logging
from gettext import gettext as _
from typing import Dict

from easydict import EasyDict as edict

logger = logging.getLogger(__name__)

ENV_PREFIX = "POINTMARKER_"


def _coerce(value, default):
    if not isinstance(value, str) or default is None:
        return value
    if isinstance(default, bool):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value


def load_cfg_from_env(cfg: edict, env: Dict[str, str], prefix: str = ENV_PREFIX):
    for k, v in env.items():
        if k.startswith(prefix):
            cfgkey = k.replace(prefix, "", 1).replace("__", ".").lower()
            logger.warning(
                _(
                    "Changing configuration entry from environment variable: {k}={v}"
                ).format(
                    k=cfgkey, v=v
                )  # noqa:E501
            )  # noqa: E501
            *parts, last = cfgkey.split(".")
            this_cfg = cfg
            for part in parts:
                if this_cfg.get(part) is None:
                    this_cfg[part] = edict()
                this_cfg = this_cfg[part]
            this_cfg[last] = _coerce(v, this_cfg.get(last))
    return cfg
