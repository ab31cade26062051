from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any, Sequence

from ..config import load_app_config, parse_origins
from ..errors import AppError
from ..logging import get_logger, set_level
from ..paths import find_project_root
from ..service import BlogService
from ..store import RecordStore

LOG = get_logger("cli-main")


def _build_service() -> BlogService:
    root = find_project_root(os.getcwd())
    config = load_app_config(root)
    store = RecordStore(root_dir=root, db_path=config.db_path)
    return BlogService(store, config)


def _print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


def _handle_init(_: argparse.Namespace) -> int:
    svc = _build_service()
    LOG.info(f"Record store ready at: {svc.store.db_path}")
    print(svc.store.db_path)
    return 0


def _handle_serve(ns: argparse.Namespace) -> int:
    from ..api import create_app
    import uvicorn

    set_level(ns.log_level)
    app = create_app(
        root_dir=os.getcwd(),
        static_dir=ns.static_dir,
        allow_origins=parse_origins(ns.allow_origins),
        serve_static=not ns.api_only,
    )

    uvicorn.run(
        app,
        host=ns.host,
        port=ns.port,
        reload=ns.reload,
        log_level=ns.log_level,
    )
    return 0


def _handle_products_list(ns: argparse.Namespace) -> int:
    svc = _build_service()
    _print_json([p.as_dict() for p in svc.list_products(search=ns.search, category=ns.category)])
    return 0


def _handle_templates_list(_: argparse.Namespace) -> int:
    svc = _build_service()
    _print_json([t.as_dict() for t in svc.list_templates()])
    return 0


def _handle_fetch(ns: argparse.Namespace) -> int:
    svc = _build_service()
    if ns.save:
        _print_json(svc.fetch_and_save_product(ns.url).as_dict())
    else:
        _print_json(svc.fetch_product_details(ns.url))
    return 0


def _handle_generate(ns: argparse.Namespace) -> int:
    svc = _build_service()
    result = svc.generate_post(
        ns.product_ids or [],
        ns.instructions,
        template_id=ns.template_id,
        seo_keywords=ns.keywords,
        include_comparison_cards=ns.comparison_cards,
        save=ns.save,
    )
    _print_json(result)
    return 0


def _handle_test_connection(_: argparse.Namespace) -> int:
    svc = _build_service()
    if svc.test_connection():
        print("Connection OK")
        return 0
    LOG.error("Connection failed. Please check your API key in the .env file.")
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.info(f"CLI invoked with arguments: {provided}")

    parser = argparse.ArgumentParser(
        prog="affiliate-posts",
        description="Manage the product library and generate affiliate blog posts.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_cmd = subparsers.add_parser("init", help="Create/ensure the record store schema exists")
    init_cmd.set_defaults(handler=_handle_init)

    serve = subparsers.add_parser("serve", help="Run the JSON API and optional static frontend server.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8001)
    serve.add_argument("--reload", action="store_true", help="Enable auto-reload (development only)")
    serve.add_argument("--log-level", default="info")
    serve.add_argument("--static-dir", help="Override static frontend directory relative to project root")
    serve.add_argument("--api-only", action="store_true", help="Serve JSON API without static frontend")
    serve.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )
    serve.set_defaults(handler=_handle_serve)

    products = subparsers.add_parser("products", help="Product library utilities")
    products_sub = products.add_subparsers(dest="products_cmd", required=True)
    products_list = products_sub.add_parser("list", help="Print stored products as JSON")
    products_list.add_argument("--search", help="Match against name, title, brand and tags")
    products_list.add_argument("--category", help="Exact category filter")
    products_list.set_defaults(handler=_handle_products_list)

    templates = subparsers.add_parser("templates", help="Prompt template utilities")
    templates_sub = templates.add_subparsers(dest="templates_cmd", required=True)
    templates_list = templates_sub.add_parser("list", help="Print stored templates as JSON")
    templates_list.set_defaults(handler=_handle_templates_list)

    fetch = subparsers.add_parser("fetch", help="Look up product details for a product page URL")
    fetch.add_argument("--url", required=True)
    fetch.add_argument("--save", action="store_true", help="Store the result in the product library")
    fetch.set_defaults(handler=_handle_fetch)

    generate = subparsers.add_parser("generate", help="Generate a blog post for stored products")
    generate.add_argument(
        "--product-id",
        action="append",
        dest="product_ids",
        help="Stored product id (can be provided multiple times)",
    )
    generate.add_argument("--instructions", help="Post-specific instructions")
    generate.add_argument("--template-id", help="Stored template to use as the task")
    generate.add_argument("--keywords", help="Comma separated SEO keywords")
    generate.add_argument("--comparison-cards", action="store_true", help="Ask for comparison cards instead of a table")
    generate.add_argument("--save", action="store_true", help="Save the generated post")
    generate.set_defaults(handler=_handle_generate)

    test_conn = subparsers.add_parser("test-connection", help="Send a trivial prompt to the configured backend")
    test_conn.set_defaults(handler=_handle_test_connection)

    args = parser.parse_args(provided)
    try:
        code = args.handler(args)
    except AppError as exc:
        LOG.error(f"Subcommand '{args.command}' failed: {exc.message}")
        code = 1
    LOG.info(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
