from multi_agent_reasoning.cli import main

raise SystemExit(main())
