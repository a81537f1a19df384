"""Package entry point for ``python -m heatmap_clipper``.

WHY: Users run the clipper as ``python -m heatmap_clipper --url <link>``
or start the HTTP service with ``python -m heatmap_clipper --server``.

HOW: Delegates to the CLI's main(), which handles both modes.
"""

from heatmap_clipper.cli import main

if __name__ == "__main__":
    main()
