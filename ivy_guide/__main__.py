"""Entry point for ``python -m ivy_guide``."""

from ivy_guide.cli import main

raise SystemExit(main())
