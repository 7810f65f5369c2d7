"""Allow ``python -m vmdisks``."""

from .cli import main

if __name__ == '__main__':
    main()
