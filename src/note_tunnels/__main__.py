import sys

from note_tunnels.app import main

sys.exit(main())
