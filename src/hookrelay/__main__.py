import sys

from hookrelay.app import main

sys.exit(main())
