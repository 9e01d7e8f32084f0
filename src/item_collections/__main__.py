import sys

from item_collections.cli import main

sys.exit(main())
