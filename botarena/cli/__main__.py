import sys

from botarena.cli import main

sys.exit(main())
