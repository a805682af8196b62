import sys

from chatterbox.client import main

sys.exit(main())
