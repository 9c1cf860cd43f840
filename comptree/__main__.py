import sys

from .compressor_tree import main

sys.exit(main())
