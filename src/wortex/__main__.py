"""Allow ``python -m wortex``; tmux windows re-enter the CLI this way."""

from wortex.cli import main

if __name__ == "__main__":
    main()
