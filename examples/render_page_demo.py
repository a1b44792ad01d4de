"""Open a URL in PhantomJS, print what the page reports, and optionally render it."""

import argparse
import logging

from phantombridge import PhantomBridgeError
from phantombridge import Rect
from phantombridge import ViewportSize
from phantombridge import open_process


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments.

    :returns: Parsed CLI arguments.
    """
    parser = argparse.ArgumentParser(description="Load a page through a supervised PhantomJS process.")
    parser.add_argument("url", help="Address to open.")
    parser.add_argument("--bin", dest="bin_path", default=None, help="PhantomJS executable.")
    parser.add_argument("--output", default=None, help="Render the page to this file.")
    parser.add_argument("--width", type=int, default=1280, help="Viewport width in pixels.")
    parser.add_argument("--height", type=int, default=800, help="Viewport height in pixels.")
    parser.add_argument("--clip", action="store_true", help="Clip the rendering to the viewport.")
    parser.add_argument("--verbose", action="store_true", help="Log engine traffic.")
    return parser.parse_args()


def main() -> int:
    """Run the demonstration.

    :returns: Process exit code where ``0`` indicates success.
    """
    args: argparse.Namespace = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose is True else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        with open_process(bin_path=args.bin_path) as process:
            with process.create_web_page() as page:
                page.viewport_size = ViewportSize(width=args.width, height=args.height)
                if args.clip is True:
                    page.clip_rect = Rect(width=args.width, height=args.height)
                page.open(args.url)

                print(f"url:    {page.url}")
                print(f"title:  {page.title}")
                print(f"frames: {page.frame_names}")
                print(f"cookies: {len(page.cookies)}")
                if args.output is not None:
                    page.render(args.output)
                    print(f"rendered to {args.output}")
    except PhantomBridgeError as exc:
        logging.getLogger(__name__).error("%s: %s", type(exc).__name__, exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
