import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Union

from dotenv import dotenv_values

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessDefinition:
    """A named command line from the Procfile."""
    name: str
    command_line: str


@dataclass(frozen=True)
class EnvironmentOverride:
    """A KEY=VALUE assignment from the environment file."""
    key: str
    value: str


def _strip_comment(line: str) -> str:
    """Drops everything from the first '#' onward, along with the line ending."""
    return line.split("#", 1)[0].rstrip("\r\n")


def parse_procfile(lines: Iterable[str]) -> List[ProcessDefinition]:
    """
    Parses ordered `name: command` pairs.

    Comments are stripped first, blank remainders are skipped, and the line is
    split at the first ':'. The single space after the colon is not part of the
    command line. Lines without a colon are skipped with a warning.

    :param lines: The Procfile lines.
    :return list: The definitions, in file order.
    """
    definitions: List[ProcessDefinition] = []
    for lineno, raw_line in enumerate(lines, start=1):
        line = _strip_comment(raw_line)
        if not line.strip():
            continue

        name, colon, command_line = line.partition(":")
        if not colon:
            log.warning(f"Skipping Procfile line {lineno}: no 'name: command' separator in {line!r}")
            continue
        if command_line.startswith(" "):
            command_line = command_line[1:]

        definitions.append(ProcessDefinition(name=name, command_line=command_line))
    return definitions


def parse_env(lines: Iterable[str]) -> List[EnvironmentOverride]:
    """
    Parses `KEY=VALUE` overrides.

    Comments are stripped and lines without '=' are ignored. What remains is
    handed to python-dotenv, which understands `export` prefixes, quoting, and
    `${VAR}` interpolation. A key assigned twice keeps its later value.

    :param lines: The environment file lines.
    :return list: The overrides, in order of first appearance.
    """
    assignments = [line for line in map(_strip_comment, lines) if "=" in line]
    if not assignments:
        return []

    values = dotenv_values(stream=io.StringIO("\n".join(assignments) + "\n"))
    return [
        EnvironmentOverride(key=key, value=value if value is not None else "")
        for key, value in values.items()
    ]


def load_procfile(path: Union[str, Path]) -> List[ProcessDefinition]:
    """
    Reads and parses a Procfile.

    :param path: Location of the Procfile.
    :return list: The definitions, in file order.
    :raises FileNotFoundError: If the Procfile does not exist.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        definitions = parse_procfile(f)
    log.debug(f"Loaded {len(definitions)} process definitions from {path}")
    return definitions


def load_env(path: Union[str, Path]) -> List[EnvironmentOverride]:
    """
    Reads and parses an environment file. A missing file yields no overrides.

    :param path: Location of the environment file.
    :return list: The overrides.
    """
    path = Path(path)
    if not path.exists():
        log.debug(f"No environment file at {path}, running without overrides.")
        return []
    with path.open("r", encoding="utf-8") as f:
        overrides = parse_env(f)
    log.debug(f"Loaded {len(overrides)} environment overrides from {path}")
    return overrides
