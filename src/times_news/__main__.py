"""Entry point for ``python -m times_news``."""

from times_news.main import main

if __name__ == "__main__":
    main()
