"""Entry point for the Inkpress CLI.

Allows running the package directly with ``python -m inkpress``.
"""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
