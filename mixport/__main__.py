"""Allow ``python -m mixport``."""

from __future__ import annotations

from mixport.cli import main

raise SystemExit(main())
