from os.path import realpath
from pathlib import Path
from subprocess import DEVNULL, run
from typing import Mapping, Optional

from .utils import *

COMPOSE_FILENAME = 'docker-compose.generated.yml'


def compose_file_path(procname: str, env: Mapping[str, str]) -> Path:
    """The generated compose file lives next to the program that was
    invoked, unless RADIXFLEET_COMPOSE_FILE points elsewhere."""
    override = env.get('RADIXFLEET_COMPOSE_FILE')
    if override:
        return Path(override)
    return Path(realpath(procname)).parent / COMPOSE_FILENAME


def compose_down(compose_file: Path) -> int:
    command = ['docker', 'compose', '-f', str(compose_file), 'down', '-v', '--remove-orphans']
    try:
        return run(command, stdin=DEVNULL).returncode
    except OSError as e:
        warn(f"Error: cannot run docker: {e}")
        # what a shell returns for a command it can't find
        return 127


def main(procname, *args, **env) -> Optional[int]:
    print("=== Stopping Docker Compose Cluster ===")

    compose_file = compose_file_path(procname, env)
    if not compose_file.is_file():
        print(f"Error: Compose file not found at {compose_file}")
        print("Is the cluster running?")
        return 1

    print(f"Using compose file: {compose_file}")
    returncode = compose_down(compose_file)
    if returncode:
        return returncode

    print("Cluster stopped and volumes removed.")
    return None


__all__ = ('COMPOSE_FILENAME', 'compose_down', 'compose_file_path', 'main')
