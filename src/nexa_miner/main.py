import multiprocessing
import sys

# this is neccessary to avoid accidental multiprocessing fork-bomb when compiled
if __name__ == "__main__":
    multiprocessing.freeze_support()

from nexa_miner.cli import main

if __name__ == "__main__":
    sys.exit(main())
