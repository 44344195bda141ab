import sys

from smartcalc.main import main

sys.exit(main())
