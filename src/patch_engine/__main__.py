from src.patch_engine.cli import main

raise SystemExit(main())
