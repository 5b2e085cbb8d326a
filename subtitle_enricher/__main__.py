"""Package entry point for ``python -m subtitle_enricher``.

WHY: Lets operators enrich a JSON file of records without installing the
console script.

HOW: Delegates to the CLI's main() function.

RULES:
- This file must exist for ``python -m subtitle_enricher`` to work
"""

import sys

from subtitle_enricher.cli import main

if __name__ == "__main__":
    sys.exit(main())
