import sys

from rms_server.cli import main

sys.exit(main())
