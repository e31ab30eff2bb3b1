import sys

from partitions.cli import main


sys.exit(main())
