"""Allow ``python -m copyright_matcher``."""

import sys

from copyright_matcher.main import main


sys.exit(main())
