import logging
from pathlib import Path
from typing import List, MutableMapping, Optional, Sequence, Tuple, Union

from procmux import settings
from procmux.errors import ConfigurationError
from procmux.local.procfile import EnvironmentOverride, ProcessDefinition, load_env, load_procfile

log = logging.getLogger(__name__)


def resolve_procfile(base_dir: Union[str, Path], name: Optional[str] = None) -> Path:
    """
    Locates the Procfile in a directory.

    :param base_dir: The directory to look in, usually the current working directory.
    :param name: The Procfile name. Defaults to the PROCMUX_PROCFILE setting.
    :return pathlib.Path: The Procfile path.
    :raises ConfigurationError: If the Procfile does not exist.
    """
    path = Path(base_dir) / (name or settings.PROCFILE_NAME)
    if not path.is_file():
        raise ConfigurationError(f"Procfile does not exist: {path}")
    return path


def load_run_inputs(base_dir: Union[str, Path]) -> Tuple[List[ProcessDefinition], List[EnvironmentOverride]]:
    """
    Loads the process definitions and environment overrides for a run.

    :param base_dir: The directory holding the Procfile and environment file.
    :return tuple: (definitions, overrides).
    :raises ConfigurationError: If the Procfile does not exist.
    """
    procfile_path = resolve_procfile(base_dir)
    definitions = load_procfile(procfile_path)
    overrides = load_env(Path(base_dir) / settings.ENV_FILE_NAME)
    return definitions, overrides


def apply_overrides(overrides: Sequence[EnvironmentOverride], environ: MutableMapping[str, str]) -> MutableMapping[str, str]:
    """
    Applies overrides to an environment in order; the last value for a key wins.

    :param overrides: The overrides, in file order.
    :param environ: The environment to mutate (os.environ for a real run).
    :return: The same environment mapping.
    """
    for override in overrides:
        log.debug(f"Setting environment override: {override.key}")
        environ[override.key] = override.value
    return environ
