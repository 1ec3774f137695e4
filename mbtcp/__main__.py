"""python -m mbtcp"""

import sys

from mbtcp.cli import main

sys.exit(main())
