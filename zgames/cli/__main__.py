import sys

from zgames.cli import main

sys.exit(main())
