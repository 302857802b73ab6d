from pagecomposer.cli import main

raise SystemExit(main())
