import argparse, asyncio, os, sys
from src.wikicrawl.config import CrawlConfig, HttpConfig, WikiConfig, get_database_config
from src.wikicrawl.crawl import CrawlState, crawl
from src.wikicrawl.database import create_connection
from src.wikicrawl.db_operations import crawl_counts, init_db, seed_page
from src.wikicrawl.errors import NoPathError, PageNotFoundError
from src.wikicrawl.http_client import create_client
from src.wikicrawl.models import Page
from src.wikicrawl.pathfinder import wikipath
from src.wikicrawl.resolver import IdentityResolver


async def run_init_db(db_config, cfg, seed: bool = True):
    async with create_connection(db_config) as conn:
        await init_db(conn)
        print(f"Database ready: {db_config.describe()}")
        page = Page(id=cfg.seed_id, title=cfg.seed_title)
        if seed and await seed_page(conn, page):
            print(f"Seeded frontier with {page}")


async def run_seed(db_config, page: Page):
    async with create_connection(db_config) as conn:
        await init_db(conn)
        if await seed_page(conn, page):
            print(f"Seeded frontier with {page}")
        else:
            print(f"{page} is already known")


async def run_stats(db_config):
    async with create_connection(db_config) as conn:
        await init_db(conn)
        counters = await crawl_counts(conn)
    print(counters.summary())


async def run_path(db_config, http_config, wiki, cfg, start: str, end: str) -> bool:
    async with create_connection(db_config) as conn, create_client(http_config) as client:
        resolver = IdentityResolver(client, wiki, cfg)
        try:
            await wikipath(conn, start, end, resolver, wiki, cfg)
        except PageNotFoundError as e:
            print(f"Page not found: {e.name}")
            return False
        except NoPathError as e:
            print(str(e))
            return False
    return True


def prompt_path(args):
    start = args.start or input("Enter the starting page: ")
    end = args.end or input("Enter the ending page: ")
    return start, end


def interactive(args, db_config, http_config, wiki, cfg) -> int:
    print("What do you want to do ?")
    print("1 - Search the shortest path between two pages")
    print("2 - Crawl the wiki")
    print("3 - Exit")
    choice = input("> ").strip()
    if choice == "1":
        start, end = prompt_path(args)
        return 0 if asyncio.run(run_path(db_config, http_config, wiki, cfg, start, end)) else 1
    if choice == "2":
        state = asyncio.run(crawl(db_config, http_config, wiki, cfg))
        return 0 if state in (CrawlState.COMPLETED, CrawlState.CANCELLED) else 1
    return 0


if __name__ == "__main__":
    p = argparse.ArgumentParser(
        description="Wikipedia link graph crawler and shortest path finder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s init-db
  %(prog)s crawl --batch-size 20 --resolver-concurrency 100
  %(prog)s path France "Tour Eiffel"
  %(prog)s path https://fr.m.wikipedia.org/wiki/France https://fr.m.wikipedia.org/wiki/Paris
  %(prog)s seed 1095 France
  %(prog)s --db-backend postgresql stats
        """
    )

    # Storage
    p.add_argument("--db-backend", choices=["sqlite", "postgresql"], default=None,
                   help="Database backend (default: WIKICRAWL_DB_BACKEND or sqlite)")
    p.add_argument("--sqlite-path", type=str, default=None,
                   help="SQLite database file (default: $WIKICRAWL_DATA/wikicrawl.db)")

    # HTTP configuration
    p.add_argument("--http-backend", choices=["httpx", "aiohttp"], default=None,
                   help="HTTP client backend (default: httpx)")
    p.add_argument("--no-http2", action="store_true",
                   help="Disable HTTP/2 support (use HTTP/1.1)")
    p.add_argument("--timeout", type=float, default=None,
                   help="Request timeout in seconds (default: 30)")
    p.add_argument("--wiki-host", type=str, default=None,
                   help="Wiki host to crawl (default: fr.m.wikipedia.org)")

    # Crawl behavior
    p.add_argument("--batch-size", type=int, default=None,
                   help="Pages explored per cycle (default: 10)")
    p.add_argument("--resolver-concurrency", type=int, default=None,
                   help="Concurrent link lookups (default: 80)")
    p.add_argument("--log-dir", type=str, default=None,
                   help="Directory of the crawl log files (default: logs)")
    p.add_argument("--no-progress", action="store_true",
                   help="Do not print progress lines during a cycle")

    sub = p.add_subparsers(dest="command")
    sub.add_parser("crawl", help="Crawl until no unexplored page is left")
    path_parser = sub.add_parser("path", help="Print the shortest path between two pages")
    path_parser.add_argument("start", nargs="?", help="Starting page: title, link or URL")
    path_parser.add_argument("end", nargs="?", help="Ending page: title, link or URL")
    init_parser = sub.add_parser("init-db", help="Create the tables and seed the default page")
    init_parser.add_argument("--no-seed", action="store_true", help="Do not seed the default page")
    seed_parser = sub.add_parser("seed", help="Add a starting page to the frontier")
    seed_parser.add_argument("id", type=int, help="Page id")
    seed_parser.add_argument("title", help="Page title")
    sub.add_parser("stats", help="Print crawl totals")

    args = p.parse_args()

    if args.sqlite_path:
        os.environ["WIKICRAWL_SQLITE_PATH"] = args.sqlite_path
    db_config = get_database_config(args.db_backend)

    http_config = HttpConfig()
    if args.http_backend:
        http_config.http_backend = args.http_backend
    if args.no_http2:
        http_config.enable_http2 = False
    if args.timeout is not None:
        http_config.timeout = args.timeout

    wiki = WikiConfig()
    if args.wiki_host:
        wiki.host = args.wiki_host

    cfg = CrawlConfig()
    if args.batch_size is not None:
        cfg.batch_size = args.batch_size
    if args.resolver_concurrency is not None:
        cfg.resolver_concurrency = args.resolver_concurrency
    if args.log_dir:
        cfg.log_dir = args.log_dir
    if args.no_progress:
        cfg.show_progress = False

    if args.command == "crawl":
        state = asyncio.run(crawl(db_config, http_config, wiki, cfg))
        sys.exit(0 if state in (CrawlState.COMPLETED, CrawlState.CANCELLED) else 1)
    elif args.command == "path":
        start, end = prompt_path(args)
        sys.exit(0 if asyncio.run(run_path(db_config, http_config, wiki, cfg, start, end)) else 1)
    elif args.command == "init-db":
        asyncio.run(run_init_db(db_config, cfg, seed=not args.no_seed))
    elif args.command == "seed":
        asyncio.run(run_seed(db_config, Page(id=args.id, title=args.title)))
    elif args.command == "stats":
        asyncio.run(run_stats(db_config))
    else:
        args.start = args.end = None
        sys.exit(interactive(args, db_config, http_config, wiki, cfg))
