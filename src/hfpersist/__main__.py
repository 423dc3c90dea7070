"""Allow ``python -m hfpersist``."""

from .cli import main

main()
