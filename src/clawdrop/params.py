"""Resolution of push parameters from flags, shorthand and the target game.

Precedence for every field is: shorthand, then explicit flag, then the
target game (where it knows anything).
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .constants import DEFAULT_VERSION, SUPPORTED_PLATFORMS
from .core import Game, PushParams
from .errors import ValidationError

_TRAILING_NUMBER = re.compile(r"^(.*\D)(\d+)$")


@dataclass
class Shorthand:
    """Parsed ``<id>:<os>/<exe>:<version>`` (id and version optional)."""

    os: str
    exe: str
    id: Optional[int] = None
    version: Optional[str] = None


def parse_shorthand(value: str) -> Shorthand:
    """Parse the positional shorthand.

    Examples:
        >>> parse_shorthand("32:windows/game.exe:1.0.1")
        Shorthand(os='windows', exe='game.exe', id=32, version='1.0.1')
        >>> parse_shorthand("linux/game.x86_64")
        Shorthand(os='linux', exe='game.x86_64', id=None, version=None)
    """
    left, sep, right = value.partition("/")
    if not sep:
        raise ValidationError(
            "Shorthand format is not valid, it must be "
            "<id>:<os>/<executableName>:<version> (id and version optional)."
        )

    game_id = None
    os_name = left
    if ":" in left:
        id_str, os_name = left.split(":", 1)
        if not id_str.isdigit():
            raise ValidationError("Shorthand [id] format is not valid, it must be a number.")
        game_id = int(id_str)
    if not os_name:
        raise ValidationError("Shorthand is missing the operating system.")

    exe, sep, version = right.partition(":")
    if not exe:
        raise ValidationError("Shorthand is missing the executable name.")

    return Shorthand(os=os_name, exe=exe, id=game_id, version=version if sep else None)


def bump_version(version: str) -> str:
    """Increment a trailing numeric suffix, keeping its zero padding.

    Versions without a trailing number after a non-digit are returned
    unchanged.

    Examples:
        >>> bump_version("1.0.9")
        '1.0.10'
        >>> bump_version("build-007")
        'build-008'
        >>> bump_version("beta")
        'beta'
    """
    match = _TRAILING_NUMBER.match(version)
    if not match:
        return version
    head, digits = match.groups()
    return f"{head}{int(digits) + 1:0{len(digits)}d}"


def find_executable(build_dir: Union[str, Path], exe_name: str) -> Optional[str]:
    """Locate the executable at the build root or one directory below.

    Returns:
        POSIX path relative to build_dir, or None if not found
    """
    base = Path(build_dir)
    if (base / exe_name).is_file():
        return Path(exe_name).as_posix()

    try:
        children = sorted(p for p in base.iterdir() if p.is_dir())
    except OSError:
        return None

    for child in children:
        candidate = child / exe_name
        if candidate.is_file():
            return candidate.relative_to(base).as_posix()
    return None


def resolve_push_params(
    build_dir: Union[str, Path],
    shorthand: Optional[str] = None,
    game_id: Optional[int] = None,
    os_name: Optional[str] = None,
    exe: Optional[str] = None,
    version: Optional[str] = None,
    no_bump: bool = False,
    target: Optional[Game] = None,
) -> PushParams:
    """Combine shorthand, flags and target game into a PushParams.

    Raises:
        ValidationError: If anything required is missing or malformed
    """
    short = parse_shorthand(shorthand) if shorthand else None

    resolved_id = (short.id if short else None) or game_id or (target.id if target else None)
    if resolved_id is None:
        raise ValidationError(
            "No game ID specified or target found, use --id or 'clawdrop set <id>'."
        )

    resolved_os = (short.os if short else None) or os_name
    if not resolved_os:
        raise ValidationError(
            "Operating system is missing, provide it via --os or shorthand "
            f"[{', '.join(SUPPORTED_PLATFORMS)}]."
        )
    if resolved_os not in SUPPORTED_PLATFORMS:
        raise ValidationError(
            f"Operating system '{resolved_os}' is not valid, it must be one of "
            f"{', '.join(SUPPORTED_PLATFORMS)}."
        )

    exe_name = (short.exe if short else None) or exe
    if not exe_name:
        raise ValidationError(
            "Executable name is missing, provide it via --exe or shorthand (example: game.exe)."
        )
    exe_path = find_executable(build_dir, exe_name)
    if exe_path is None:
        raise ValidationError(
            f"Executable '{exe_name}' was not found inside the build directory."
        )

    resolved_version = (short.version if short else None) or version
    if not resolved_version and target is not None:
        current = target.version_for(resolved_os)
        if current:
            resolved_version = current if no_bump else bump_version(current)

    return PushParams(
        id=resolved_id,
        os=resolved_os,
        exe=exe_path,
        version=resolved_version or DEFAULT_VERSION,
    )
