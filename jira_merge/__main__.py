import sys

from jira_merge.cli import main

sys.exit(main())
