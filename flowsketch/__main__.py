"""``python -m flowsketch`` starts the editor window (``--smoke`` exits after setup)."""

from flowsketch.ui import main

if __name__ == "__main__":
    raise SystemExit(main())
