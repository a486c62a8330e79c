import sys

from shellboot.main import main

sys.exit(main())
