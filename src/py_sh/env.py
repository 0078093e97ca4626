"""Environment variables handed to every launched program.

In Unix, every process has an environment: a set of ``KEY=VALUE`` string
pairs inherited from its parent.  The engine passes its environment to
``execvpe`` unchanged, which is also how ``PATH`` lookup finds programs.

Key design properties:
    - **Snapshot, not live view** — ``Environment.from_os()`` copies
      ``os.environ`` once; later changes to either side stay separate.
    - **Strings only** — both keys and values are strings.

Our ``Environment`` class wraps a plain dict and provides the standard
operations: get, set, delete, list, and copy.
"""

import os


class Environment:
    """A key-value store for environment variables.

    Each instance is an independent copy — modifying one does not
    affect any other.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        """Create an environment, optionally pre-populated.

        Args:
            initial: Starting variables (copied, not referenced).

        """
        self._vars: dict[str, str] = dict(initial) if initial else {}

    @classmethod
    def from_os(cls) -> "Environment":
        """Snapshot the current process environment."""
        return cls(initial=dict(os.environ))

    def get(self, key: str, default: str | None = None) -> str | None:
        """Return the value for *key*, or *default* if not set."""
        return self._vars.get(key, default)

    def set(self, key: str, value: str) -> None:
        """Set *key* to *value* (creates or overwrites)."""
        self._vars[key] = value

    def as_dict(self) -> dict[str, str]:
        """Return a plain dict copy, the shape ``execvpe`` expects."""
        return dict(self._vars)

