"""Allow running the pipeline as a module: python -m matchday <command>."""

from matchday.runner import main

if __name__ == "__main__":
    main()
