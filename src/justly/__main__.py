from justly.cli import main

raise SystemExit(main())
