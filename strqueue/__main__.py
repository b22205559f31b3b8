import sys

from strqueue.main import main

sys.exit(main())
