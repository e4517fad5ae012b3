"""``python -m docms [args...]`` — run the service."""

import sys

from docms.application import main

sys.exit(main())
