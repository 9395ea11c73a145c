import importlib.util
import logging
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


def load_module(script_path: Union[str, Path], module_name: Optional[str] = None):
    script_path = Path(script_path)
    if module_name is None:
        module_name = script_path.stem
    spec = importlib.util.spec_from_file_location(module_name, str(script_path))
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load module from {script_path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    logger.debug(f"Loaded module {module_name} from {script_path}")
    return module
