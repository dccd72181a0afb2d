import sys

from mhtml2html.cli import main


if __name__ == "__main__":
    sys.exit(main())
