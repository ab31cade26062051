from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.staticfiles import StaticFiles

from ..config import AppConfig, load_app_config
from ..errors import AppError, ValidationError
from ..logging import get_logger
from ..paths import find_project_root
from ..service import BlogService
from ..store import RecordStore


LOG = get_logger("api")

DEFAULT_STATIC_SUBDIR = "dist"


async def _json_body(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError("Request body must be valid JSON") from exc
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def create_app(
    root_dir: Optional[str] = None,
    *,
    config: Optional[AppConfig] = None,
    service: Optional[BlogService] = None,
    static_dir: Optional[str] = None,
    allow_origins: Optional[List[str]] = None,
    serve_static: bool = True,
) -> Starlette:
    """Create a Starlette app exposing the REST API and an optional built frontend."""

    project_root = find_project_root(root_dir)
    if service is None:
        config = config or load_app_config(project_root)
        store = RecordStore(root_dir=project_root, db_path=config.db_path)
        service = BlogService(store, config)
    svc = service

    resolved_static_dir: Optional[str] = None
    if serve_static:
        candidate = os.path.abspath(os.path.join(project_root, static_dir or DEFAULT_STATIC_SUBDIR))
        if os.path.isdir(candidate):
            resolved_static_dir = candidate
            LOG.info("Serving static frontend from %s", resolved_static_dir)
        else:
            LOG.warning("Frontend build not found at %s; API will run without static assets.", candidate)
    else:
        LOG.info("Static frontend serving disabled (API only mode).")

    # ---------- health / settings ----------
    async def health(_: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "dbPath": svc.store.db_path, "backend": svc.config.backend})

    async def get_settings(_: Request) -> JSONResponse:
        return JSONResponse(svc.get_settings().as_dict())

    async def save_settings(request: Request) -> JSONResponse:
        svc.update_settings(await _json_body(request))
        return JSONResponse({"success": True})

    async def api_key(_: Request) -> JSONResponse:
        return JSONResponse({"apiKey": svc.api_key_status()})

    async def notices(_: Request) -> JSONResponse:
        return JSONResponse([n.as_dict() for n in svc.notices.drain()])

    # ---------- templates ----------
    async def list_templates(_: Request) -> JSONResponse:
        return JSONResponse([t.as_dict() for t in svc.list_templates()])

    async def save_template(request: Request) -> JSONResponse:
        data = await _json_body(request)
        template = svc.save_template(data)
        status = 200 if data.get("id") else 201
        return JSONResponse({"success": True, "id": template.id}, status_code=status)

    async def get_template(request: Request) -> JSONResponse:
        return JSONResponse(svc.get_template(request.path_params["template_id"]).as_dict())

    async def delete_template(request: Request) -> JSONResponse:
        svc.delete_template(request.path_params["template_id"])
        return JSONResponse({"success": True})

    # ---------- posts ----------
    async def list_posts(_: Request) -> JSONResponse:
        return JSONResponse([p.as_dict(include_content=False) for p in svc.list_posts()])

    async def save_post(request: Request) -> JSONResponse:
        post = svc.save_post(await _json_body(request))
        return JSONResponse({"success": True, "id": post.id}, status_code=201)

    async def delete_posts(request: Request) -> JSONResponse:
        data = await _json_body(request)
        count = svc.delete_posts(data.get("ids"))
        return JSONResponse({"success": True, "count": count})

    async def get_post(request: Request) -> JSONResponse:
        return JSONResponse(svc.get_post(request.path_params["post_id"]).as_dict())

    async def delete_post(request: Request) -> JSONResponse:
        svc.delete_post(request.path_params["post_id"])
        return JSONResponse({"success": True})

    # ---------- products ----------
    async def list_products(request: Request) -> JSONResponse:
        qp = request.query_params
        items = svc.list_products(search=qp.get("search"), category=qp.get("category"))
        return JSONResponse([p.as_dict() for p in items])

    async def product_categories(_: Request) -> JSONResponse:
        return JSONResponse(svc.list_categories())

    async def create_product(request: Request) -> JSONResponse:
        product = svc.create_product(await _json_body(request))
        return JSONResponse(product.as_dict(), status_code=201)

    async def delete_products(request: Request) -> JSONResponse:
        data = await _json_body(request)
        count = svc.delete_products(data.get("ids"))
        return JSONResponse({"success": True, "count": count})

    async def get_product(request: Request) -> JSONResponse:
        return JSONResponse(svc.get_product(request.path_params["product_id"]).as_dict())

    async def update_product(request: Request) -> JSONResponse:
        product = svc.update_product(request.path_params["product_id"], await _json_body(request))
        return JSONResponse(product.as_dict())

    async def delete_product(request: Request) -> JSONResponse:
        svc.delete_product(request.path_params["product_id"])
        return JSONResponse({"success": True})

    async def fetch_and_save_product(request: Request) -> JSONResponse:
        data = await _json_body(request)
        product_url = (data.get("productUrl") or "").strip()
        if not product_url:
            raise ValidationError("productUrl is required.")
        product = await run_in_threadpool(svc.fetch_and_save_product, product_url)
        return JSONResponse(product.as_dict())

    # ---------- generation ----------
    async def fetch_product(request: Request) -> JSONResponse:
        data = await _json_body(request)
        product_url = (data.get("productUrl") or "").strip()
        if not product_url:
            raise ValidationError("productUrl is required.")
        details = await run_in_threadpool(svc.fetch_product_details, product_url)
        return JSONResponse(details)

    async def generate_post(request: Request) -> JSONResponse:
        data = await _json_body(request)

        def _run() -> Dict[str, Any]:
            return svc.generate_post(
                data.get("products"),
                data.get("instructions"),
                template_prompt=data.get("templatePrompt"),
                template_id=data.get("templateId"),
                seo_keywords=data.get("seoKeywords"),
                include_comparison_cards=bool(data.get("includeComparisonCards")),
                save=bool(data.get("save")),
            )

        return JSONResponse(await run_in_threadpool(_run))

    async def generate_title(request: Request) -> JSONResponse:
        data = await _json_body(request)
        titles = await run_in_threadpool(svc.generate_title_ideas, data.get("products"))
        return JSONResponse(titles)

    async def generate_tags(request: Request) -> JSONResponse:
        data = await _json_body(request)
        tags = await run_in_threadpool(svc.generate_tags, data.get("title") or "", data.get("content") or "")
        return JSONResponse(tags)

    async def test_connection(_: Request) -> JSONResponse:
        ok = await run_in_threadpool(svc.test_connection)
        if ok:
            return JSONResponse({"success": True})
        return JSONResponse(
            {"success": False, "message": "Connection failed. Please check your API key in the .env file."},
            status_code=400,
        )

    # ---------- error envelope ----------
    async def app_error(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            LOG.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            LOG.warning("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
        svc.notices.error(exc.message)
        return JSONResponse({"message": exc.message}, status_code=exc.status_code)

    async def http_error(request: Request, exc: HTTPException) -> JSONResponse:
        LOG.warning("%s %s -> HTTP %s", request.method, request.url.path, exc.status_code)
        return JSONResponse({"message": exc.detail}, status_code=exc.status_code)

    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        LOG.exception("Unhandled error in %s %s", request.method, request.url.path)
        svc.notices.error("An unknown server error occurred.")
        return JSONResponse({"message": f"Server Error: {exc}"}, status_code=500)

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/settings", get_settings, methods=["GET"]),
        Route("/api/settings", save_settings, methods=["POST"]),
        Route("/api/api-key", api_key, methods=["GET"]),
        Route("/api/notices", notices, methods=["GET"]),
        Route("/api/templates", list_templates, methods=["GET"]),
        Route("/api/templates", save_template, methods=["POST"]),
        Route("/api/templates/{template_id:str}", get_template, methods=["GET"]),
        Route("/api/templates/{template_id:str}", delete_template, methods=["DELETE"]),
        Route("/api/posts", list_posts, methods=["GET"]),
        Route("/api/posts", save_post, methods=["POST"]),
        Route("/api/posts", delete_posts, methods=["DELETE"]),
        Route("/api/posts/{post_id:str}", get_post, methods=["GET"]),
        Route("/api/posts/{post_id:str}", delete_post, methods=["DELETE"]),
        Route("/api/products", list_products, methods=["GET"]),
        Route("/api/products", create_product, methods=["POST"]),
        Route("/api/products", delete_products, methods=["DELETE"]),
        Route("/api/products/categories", product_categories, methods=["GET"]),
        Route("/api/products/fetch-and-save", fetch_and_save_product, methods=["POST"]),
        Route("/api/products/{product_id:str}", get_product, methods=["GET"]),
        Route("/api/products/{product_id:str}", update_product, methods=["PUT"]),
        Route("/api/products/{product_id:str}", delete_product, methods=["DELETE"]),
        Route("/api/gemini/fetch-product", fetch_product, methods=["POST"]),
        Route("/api/gemini/generate-post", generate_post, methods=["POST"]),
        Route("/api/gemini/generate-title", generate_title, methods=["POST"]),
        Route("/api/gemini/generate-tags", generate_tags, methods=["POST"]),
        Route("/api/test-connection", test_connection, methods=["POST"]),
    ]

    app = Starlette(
        debug=False,
        routes=routes,
        exception_handlers={
            AppError: app_error,
            HTTPException: http_error,
            Exception: unexpected_error,
        },
    )
    app.state.service = svc

    origins = allow_origins or ["http://localhost:5173", "http://127.0.0.1:5173"]
    cors_allow_origins = ["*"] if "*" in origins else origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_allow_origins,
        allow_credentials="*" not in cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if resolved_static_dir:
        app.mount("/", StaticFiles(directory=resolved_static_dir, html=True), name="frontend")
    else:
        async def api_only(_: Request) -> JSONResponse:
            return JSONResponse({"message": "Affiliate post API is running. No static frontend is being served."})

        app.add_route("/", api_only, methods=["GET"])

    return app


__all__ = ["create_app"]
