"""mcx CLI: copy and remove objects on filesystems and object stores."""

from ._helpers import main  # noqa: F401 (entry point)

# Import command modules to register Click commands with the main group.
from . import _basic, _cp, _lock, _rm  # noqa: F401
