"""Entry point for the Quire CLI.

Allows running the generator with ``python -m quire``.
"""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
