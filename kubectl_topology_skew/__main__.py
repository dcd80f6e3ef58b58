import sys

from kubectl_topology_skew.cli import main

sys.exit(main())
