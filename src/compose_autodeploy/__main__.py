"""Allow ``python -m compose_autodeploy``."""

from .cli import main

if __name__ == "__main__":
    main()
