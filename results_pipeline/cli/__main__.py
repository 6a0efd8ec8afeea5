import sys

from results_pipeline.cli import main

sys.exit(main())
