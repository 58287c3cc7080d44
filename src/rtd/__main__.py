from rtd.cli import main

raise SystemExit(main())
