import sys

from groomnet.cli import main

sys.exit(main())
