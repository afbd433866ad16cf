from referral_scout.cli import main

raise SystemExit(main())
