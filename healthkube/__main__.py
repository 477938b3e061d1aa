import sys

from healthkube.main import main

sys.exit(main())
