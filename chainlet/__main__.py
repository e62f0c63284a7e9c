import sys

from chainlet.cli import main

sys.exit(main())
