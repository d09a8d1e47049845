"""Run the bridge with ``python -m osc_gpio [config]``."""

from .daemon import main

raise SystemExit(main())
