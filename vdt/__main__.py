import sys

from vdt.cli import main

sys.exit(main())
