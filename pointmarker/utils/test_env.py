import pointmarker.utils.i18n  # noqa:F401

from easydict import EasyDict as edict

from .config import get_cfg
from .env import load_cfg_from_env


def test_load_cfg_from_env():
    input_dict = {"POINTMARKER_a": 2, "POINTMARKER_eoq__trabson": 3}
    loaded = load_cfg_from_env(edict(), input_dict)
    assert loaded.a == 2
    assert loaded.eoq.trabson == 3


def test_load_cfg_from_env_ignores_other_prefixes():
    loaded = load_cfg_from_env(edict(), {"OTHER_a": "1"})
    assert "a" not in loaded


def test_env_values_take_the_type_of_the_default():
    cfg = get_cfg({
        "POINTMARKER_VIEWPORT__MAX_SCALE": "8",
        "POINTMARKER_VIEWPORT__PAN_STEP": "25",
    })
    assert cfg.viewport.max_scale == 8.0
    assert isinstance(cfg.viewport.max_scale, float)
    assert cfg.viewport.pan_step == 25
    assert isinstance(cfg.viewport.pan_step, int)
    assert cfg.hit.spot_radius == 10.0
