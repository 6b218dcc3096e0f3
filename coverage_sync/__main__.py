"""Allow ``python -m coverage_sync``."""
from coverage_sync.main import main

if __name__ == "__main__":
    main()
