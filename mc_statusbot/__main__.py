import sys

from mc_statusbot.bot import main

sys.exit(main())
