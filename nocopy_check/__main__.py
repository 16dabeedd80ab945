"""Allow ``python -m nocopy_check``."""

from nocopy_check.main import main

if __name__ == "__main__":
    raise SystemExit(main())
