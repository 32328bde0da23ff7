import sys

from balance_sources.cli import main


sys.exit(main())
