# src/contactscout/cli.py

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from contactscout.config import ROTATION_STRATEGIES, CrawlOptions
from contactscout.crawler import run_crawl
from contactscout.log_utils import setup_logging

log = logging.getLogger(__name__)


def read_url_file(path: Path) -> List[str]:
    """One URL per line; blank lines and '#' comments are skipped."""
    urls = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                urls.append(line)
    return urls


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Crawl a list of URLs and extract contact details and people.")
    parser.add_argument("-i", "--input-file", type=Path, required=True,
                        help="Text file with one URL per line.")
    parser.add_argument("-o", "--output-file", type=Path, default=None,
                        help="JSON output file. Default: stdout.")
    parser.add_argument("-w", "--workers", type=int, default=None,
                        help="Number of pages crawled concurrently. Default: 5")
    parser.add_argument("--proxy-file", type=Path, default=None,
                        help="Proxy list (host:port, host:port:user:pass or user:pass@host:port).")
    parser.add_argument("--strategy", choices=ROTATION_STRATEGIES, default=None,
                        help="Proxy rotation strategy. Default: round_robin")
    parser.add_argument("--retries", type=int, default=None,
                        help="Fetch attempts per URL. Default: 3")
    parser.add_argument("--names-file", type=Path, default=None,
                        help="Name database (.xlsx or .csv): first, last, role, variations.")
    parser.add_argument("--no-people", action="store_false", dest="extract_people",
                        help="Skip person extraction.")
    parser.add_argument("--no-social", action="store_false", dest="extract_social",
                        help="Skip LinkedIn and GitHub profile extraction.")
    parser.add_argument("--no-facebook", action="store_false", dest="extract_facebook",
                        help="Skip Facebook profile extraction.")
    parser.add_argument("--log-file", default=None, help="Also log to this rotating file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    parser.set_defaults(extract_people=True, extract_social=True, extract_facebook=True)
    return parser


def options_from_args(args: argparse.Namespace) -> CrawlOptions:
    options = CrawlOptions()
    if args.workers is not None:
        options.workers = args.workers
    if args.retries is not None:
        options.max_retries = args.retries
    if args.strategy is not None:
        options.rotation_strategy = args.strategy
    if args.proxy_file is not None:
        options.proxy_file = str(args.proxy_file)
        options.use_direct_connection = False
    if args.names_file is not None:
        options.names_file = str(args.names_file)
    options.extract_people = options.extract_people and args.extract_people
    options.extract_social = options.extract_social and args.extract_social
    options.extract_facebook = options.extract_facebook and args.extract_facebook
    return options.validate()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file, stream=sys.stderr)

    try:
        urls = read_url_file(args.input_file)
    except FileNotFoundError:
        log.error(f"Input file '{args.input_file}' not found.")
        return 2
    if not urls:
        log.error(f"Input file '{args.input_file}' contains no URLs.")
        return 2

    try:
        options = options_from_args(args)
    except ValueError as e:
        log.error(str(e))
        return 2

    log.info(f"Found {len(urls)} URLs. Starting crawl with {options.workers} workers...")
    with tqdm(total=len(urls), desc="Crawling", unit="url", file=sys.stderr) as bar:
        results = run_crawl(urls, options, on_result=lambda _r: bar.update(1))

    payload = json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False)
    if args.output_file:
        args.output_file.write_text(payload, encoding="utf-8")
        log.info(f"Wrote {len(results)} results to {args.output_file}")
    else:
        sys.stdout.write(payload + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
