import sys

from json2csv.main import main

sys.exit(main())
