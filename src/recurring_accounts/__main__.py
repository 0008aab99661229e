import sys

from recurring_accounts.cli import main

sys.exit(main())
