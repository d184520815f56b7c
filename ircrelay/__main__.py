import sys

from ircrelay.cli import main

sys.exit(main())
