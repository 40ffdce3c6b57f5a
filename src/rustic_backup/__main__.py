# pyright: standard

"""rustic-backup: rustic_backup/__main__.py.

Mount, initialize, check, back up and prune a rustic repository as one
fail-fast pipeline driven by backup.toml.
"""

import sys

from .cli.dispatcher import main

if __name__ == "__main__":
    sys.exit(main())
