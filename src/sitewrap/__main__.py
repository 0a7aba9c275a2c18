"""Allow ``python -m sitewrap``."""

from sitewrap.cli import main

if __name__ == "__main__":
    main()
