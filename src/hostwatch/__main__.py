import sys

from hostwatch.app import main

sys.exit(main())
