from __future__ import annotations

from content_etl.cli import main

main()
