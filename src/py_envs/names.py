"""Variable-name matching across platforms.

On Windows, environment variable names are case-insensitive: ``Path``,
``PATH`` and ``path`` all name the same variable, and the process block
keeps whichever casing was used first.  POSIX systems treat names as
plain byte strings, so ``PATH`` and ``Path`` are different variables.

Rather than detecting the platform wherever a name is compared, the
components that care receive an explicit ``case_insensitive`` flag and
fold names through ``normalize_key``.  ``IS_CASE_INSENSITIVE`` is only
the default a host passes in.
"""

import sys

IS_WINDOWS = sys.platform == "win32"

IS_CASE_INSENSITIVE = IS_WINDOWS
"""Whether the running platform compares variable names case-insensitively."""


def normalize_key(name: str, case_insensitive: bool) -> str:
    """Return the lookup key for *name* on the given platform semantics.

    Args:
        name: A variable name as written by the caller.
        case_insensitive: Whether names compare case-insensitively.

    Returns:
        The lower-cased name when *case_insensitive*, else *name* unchanged.

    """
    return name.lower() if case_insensitive else name
