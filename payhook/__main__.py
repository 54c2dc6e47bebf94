import sys

from payhook.cli import main

sys.exit(main())
