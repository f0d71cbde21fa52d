"""Self-preservation guard for shell and file tools.

Commands and paths are screened against a deny-list before anything runs.
The list is built from the fixed protected file names plus the concrete
locations in the active config, so a relocated state database or home
directory is protected the same way as the defaults. A match is reported
as a reason string; tools turn it into a PolicyViolation so the model sees
a policy block rather than a failure.
"""

import re
from pathlib import Path
from typing import Iterable

from automaton.config.loader import get_config_path
from automaton.config.schema import Config
from automaton.utils.helpers import get_data_path

# Files whose loss or corruption would destroy the automaton's identity or state
PROTECTED_FILES: frozenset[str] = frozenset({
    "state.db",
    "state.db-wal",
    "state.db-shm",
    "wallet.json",
    "automaton.json",
    "heartbeat.yml",
})

WALLET_FILENAME = "wallet.json"

# Shell verbs that can remove, replace or clobber a file
_FILE_OPS = r"\b(?:unlink|rm|rmdir|mv|cp|ln|shred|truncate|dd|install|tee|rsync)\b"
# Interpreter one-liners doing the same
_SCRIPT_OPS = (
    r"(?:\bos\.(?:remove|unlink|rename|replace|truncate|rmdir)|\bshutil\.(?:rmtree|move|copy\w*)"
    r"|\.unlink\(|\.rmdir\(|\.write_(?:text|bytes)\(|\bopen\([^)]*,\s*['\"][wa])"
)
_DIR_END = r"/?(?=[\s'\";|&)]|$)"

# Patterns that would harm the automaton regardless of file locations
STATIC_SELF_HARM_PATTERNS: list[str] = [
    rf"{_FILE_OPS}.*\.automaton{_DIR_END}",              # Remove the default home directory
    r"\bkill(all)?\s+.*automaton",                       # Terminate our own process
    r"\bpkill\s+.*automaton",
    r"\bDROP\s+TABLE\b",
    r"\bTRUNCATE\s+(TABLE\s+)?[A-Za-z_]\w*\s*(;|'|\"|$)",  # SQL TRUNCATE, not truncate(1)
]

# Generic destructive commands
DESTRUCTIVE_PATTERNS: list[str] = [
    r"\brm\s+(-[a-z]*\s+)*-[a-z]*r[a-z]*f?[a-z]*\s+/(\s|$|\*)",  # rm -rf /
    r"\brm\s+(-[a-z]*\s+)*-[a-z]*r[a-z]*\s+~/?(\s|$)",          # rm -r ~
    r"\bmkfs(\.|\s)",                                           # Format filesystem
    r"\bdd\s+.*of=/dev/",                                       # Raw disk write
    r">\s*/dev/sd[a-z]",
    r":\(\)\s*\{\s*:\|:&\s*\};:",                               # Fork bomb
    r"(?:^\s*|[;&|(`]\s*|\bsudo\s+|\bsystemctl\s+)(?:shutdown|reboot|halt|poweroff)\b",
    r"\bchmod\s+-R\s+777\s+/(\s|$)",
]


def protected_paths(config: Config) -> list[Path]:
    """Concrete locations of the files the automaton cannot survive losing."""
    db = config.db_file
    return [
        db,
        db.with_name(db.name + "-wal"),
        db.with_name(db.name + "-shm"),
        get_config_path(),
        config.heartbeat_config_file,
        get_data_path() / WALLET_FILENAME,
    ]


def self_harm_patterns(
    protected: Iterable[Path] = (),
    protected_dirs: Iterable[Path] = (),
) -> list[str]:
    """Deny-list entries for the given file and directory locations."""
    names = set(PROTECTED_FILES) | {Path(p).name for p in protected}
    target = "(?:" + "|".join(re.escape(n) for n in sorted(names, key=len, reverse=True)) + ")"

    patterns = [
        rf"{_FILE_OPS}.*{target}",                        # rm/mv/cp/ln/... naming a protected file
        rf"\bfind\b(?=.*-(?:delete|exec)\b).*{target}",   # find ... -delete / -exec rm
        rf"(?=.*{_SCRIPT_OPS}).*{target}",                 # python -c "os.remove('state.db')"
        rf">\s*\S*{target}",                              # Truncate by redirection
        rf"\bsqlite3\b.*{target}.*\b(delete|drop)\b",     # Wipe the database from its CLI
    ]
    for directory in protected_dirs:
        where = re.escape(str(Path(directory).expanduser()).rstrip("/")) + _DIR_END
        patterns.append(rf"{_FILE_OPS}.*{where}")
        patterns.append(rf"\bfind\s+{where}.*-(?:delete|exec)\b")
    return patterns + STATIC_SELF_HARM_PATTERNS


def check_forbidden_command(
    command: str,
    protected: Iterable[Path] = (),
    protected_dirs: Iterable[Path] = (),
) -> str | None:
    """Return a refusal reason if the command matches the deny-list, else None.

    Examples:
        >>> check_forbidden_command("rm -f ~/.automaton/state.db") is not None
        True
        >>> check_forbidden_command("ls -la") is None
        True
    """
    for pattern in self_harm_patterns(protected, protected_dirs):
        if re.search(pattern, command, re.IGNORECASE):
            return f"command matches self-harm pattern '{pattern}'"
    for pattern in DESTRUCTIVE_PATTERNS:
        if re.search(pattern, command, re.IGNORECASE):
            return f"command matches destructive pattern '{pattern}'"
    return None


def check_command_for_config(command: str, config: Config) -> str | None:
    """``check_forbidden_command`` with the locations ``config`` resolves to."""
    return check_forbidden_command(
        command,
        protected=protected_paths(config),
        protected_dirs=[get_data_path()],
    )


def is_protected_path(path: str | Path, extra: Iterable[Path] = ()) -> bool:
    """True if ``path`` names a protected file or one of the ``extra`` paths."""
    target = Path(path).expanduser()
    if target.name in PROTECTED_FILES:
        return True
    try:
        resolved = target.resolve()
    except (OSError, RuntimeError):
        return False
    return any(resolved == Path(p).expanduser().resolve() for p in extra)
