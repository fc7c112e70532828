import sys

from vmrelay.cli import main

sys.exit(main())
