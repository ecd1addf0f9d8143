import faulthandler
import sys

from rozo_warnquota.cli import main


def run() -> None:
    faulthandler.enable()
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    run()
